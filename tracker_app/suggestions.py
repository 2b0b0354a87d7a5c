"""
AI suggestions for task breakdown and prioritisation.

Requests go to a hosted completion model behind an OpenAI-compatible
chat completions endpoint. Suggestions are advisory: nothing here writes to
the store, and every public entry point returns an OperationResult so a
failing model never blocks the lifecycle operations.
"""
import json
import logging
import re

import requests
from django.conf import settings

from .errors import AIAdapterError, OperationResult

logger = logging.getLogger(__name__)

FAILURE_MESSAGE = 'Could not generate suggestions.'
PRIORITIES = ('High', 'Medium', 'Low')

BREAKDOWN_PROMPT = """You are an expert project manager for academic settings. Your goal is to break down a project into a list of actionable tasks for students.

Based on the project title and description below, generate a list of 3-5 concise task titles. The tasks should be logical steps to complete the project.

Project Title: {title}
Project Description: {description}

Return only a JSON object of the form {{"tasks": ["<task title>", ...]}}."""

PRIORITY_PROMPT = """You are an AI assistant helping lecturers prioritize tasks for their students.

Analyze the task descriptions, deadlines, and student workloads to suggest an optimal task prioritization for each student.
Consider the following factors when determining priority:
- Urgency: Tasks with approaching deadlines should be prioritized higher.
- Importance: Tasks with more complex descriptions or significant impact should be prioritized higher.
- Student Workload: Students with heavier workloads should have their tasks prioritized more carefully.

Tasks:
{tasks}

Student Workloads:
{workloads}

Provide a priority suggestion (High, Medium, Low) and a brief reason for each task, considering both urgency and student workload.
Ensure that the taskId and studentId in prioritySuggestions match the IDs provided in the input.
Return only a JSON object of the form
{{"prioritySuggestions": [{{"taskId": "", "studentId": "", "priority": "", "reason": ""}}]}}"""

STUDENT_ORDER_PROMPT = """You are an AI assistant helping students prioritize their tasks.

Given the following task descriptions, deadlines, and the student's current workload, suggest an optimal task prioritization.
Explain the reasoning behind the suggested prioritization.

Task Descriptions:
{tasks}

Deadlines:
{deadlines}

Current Workload: {workload}

Consider the deadlines, task descriptions, and the student's current workload to provide the most effective prioritization.
Return only a JSON object of the form {{"prioritizedTasks": ["<task description>", ...], "reasoning": ""}}."""

_FENCE = re.compile(r'^```(?:json)?\s*(.*?)\s*```$', re.DOTALL)


def parse_json_reply(raw):
    """Decode a model reply, tolerating a surrounding markdown code fence."""
    text = raw.strip()
    match = _FENCE.match(text)
    if match:
        text = match.group(1)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise AIAdapterError(f"Model reply is not valid JSON: {e}")
    if not isinstance(data, dict):
        raise AIAdapterError("Model reply is not a JSON object")
    return data


class SuggestionClient:
    def __init__(self, api_base=None, api_key=None, model=None, timeout=None, session=None):
        self.api_base = api_base or settings.TRACKER_AI_API_BASE
        self.api_key = api_key if api_key is not None else settings.TRACKER_AI_API_KEY
        self.model = model or settings.TRACKER_AI_MODEL
        self.timeout = timeout or settings.TRACKER_AI_TIMEOUT
        self.session = session or requests.Session()

    def complete(self, prompt):
        url = self.api_base.rstrip('/') + '/chat/completions'
        headers = {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json',
        }
        body = {
            'model': self.model,
            'messages': [{'role': 'user', 'content': prompt}],
            'response_format': {'type': 'json_object'},
        }
        try:
            resp = self.session.post(url, headers=headers, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise AIAdapterError(f"Completion request failed: {e}")
        if resp.status_code != 200:
            raise AIAdapterError(f"Completion API error HTTP {resp.status_code}: {resp.text[:500]}")
        try:
            content = resp.json()['choices'][0]['message']['content']
        except (ValueError, KeyError, IndexError, TypeError):
            raise AIAdapterError(f"Unexpected response shape: {resp.text[:500]}")
        if isinstance(content, list):
            content = ''.join(part.get('text', '') if isinstance(part, dict) else str(part) for part in content)
        return parse_json_reply(str(content))

    def task_breakdown(self, title, description):
        data = self.complete(BREAKDOWN_PROMPT.format(title=title, description=description))
        tasks = data.get('tasks')
        if not isinstance(tasks, list) or not all(isinstance(t, str) for t in tasks):
            raise AIAdapterError("Breakdown reply has no list of task titles")
        return [t.strip() for t in tasks if t.strip()]

    def priority(self, tasks, workloads):
        task_lines = '\n'.join(
            f"- Task ID: {t['id']}, Title: {t['title']}, Description: {t['description']}, "
            f"Deadline: {t['deadline']}, Student ID: {t['assignee_id']}"
            for t in tasks
        )
        workload_lines = '\n'.join(
            f"- Student ID: {w['student_id']}, Task Count: {w['active_count']}" for w in workloads
        )
        data = self.complete(PRIORITY_PROMPT.format(tasks=task_lines, workloads=workload_lines))
        raw = data.get('prioritySuggestions')
        if not isinstance(raw, list):
            raise AIAdapterError("Priority reply has no prioritySuggestions list")
        suggestions = []
        for item in raw:
            if not isinstance(item, dict):
                raise AIAdapterError("Priority suggestion is not an object")
            priority = str(item.get('priority', '')).strip().capitalize()
            if priority not in PRIORITIES:
                raise AIAdapterError(f"Unknown priority '{item.get('priority')}'")
            suggestions.append({
                'task_id': str(item.get('taskId', '')),
                'assignee_id': str(item.get('studentId', '')),
                'priority': priority,
                'reason': str(item.get('reason', '')),
            })
        return suggestions

    def student_order(self, task_titles, deadlines, workload_note):
        data = self.complete(STUDENT_ORDER_PROMPT.format(
            tasks='\n'.join(f'- {t}' for t in task_titles),
            deadlines='\n'.join(f'- {d}' for d in deadlines),
            workload=workload_note or 'No additional workload specified.',
        ))
        ordered = data.get('prioritizedTasks')
        if not isinstance(ordered, list):
            raise AIAdapterError("Ordering reply has no prioritizedTasks list")
        return {'prioritized_tasks': [str(t) for t in ordered], 'reasoning': str(data.get('reasoning', ''))}


def _advisory(name, call):
    try:
        return OperationResult.ok(call())
    except AIAdapterError as e:
        logger.warning("%s unavailable: %s", name, e.message)
        return OperationResult.fail(AIAdapterError(FAILURE_MESSAGE))


def suggest_task_breakdown(title, description, client=None):
    """Ordered task titles for a new project."""
    client = client or SuggestionClient()
    return _advisory('task breakdown', lambda: client.task_breakdown(title, description))


def suggest_priority(tasks, workloads, client=None):
    """
    Priority per (task, assignee) for a lecturer.

    Args:
        tasks (list): dicts with id, title, description, deadline, assignee_id.
        workloads (list): dicts with student_id, active_count.

    Returns:
        OperationResult: value is a list of dicts with task_id, assignee_id, priority, reason.
    """
    client = client or SuggestionClient()
    return _advisory('priority suggestions', lambda: client.priority(tasks, workloads))


def suggest_student_order(task_titles, deadlines, workload_note='', client=None):
    client = client or SuggestionClient()
    return _advisory('student ordering', lambda: client.student_order(task_titles, deadlines, workload_note))
