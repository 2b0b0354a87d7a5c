# tracker_user/serializers.py
from rest_framework import serializers
from .models import User


class UserSerializer(serializers.ModelSerializer):
    supervising_lecturer = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = User
        fields = ['id', 'name', 'email', 'role', 'supervising_lecturer', 'created_at', 'updated_at']
        read_only_fields = fields
