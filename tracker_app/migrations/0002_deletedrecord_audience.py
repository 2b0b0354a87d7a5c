from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('tracker_app', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='deletedrecord',
            name='audience',
            field=models.ManyToManyField(blank=True, related_name='tombstones', to=settings.AUTH_USER_MODEL),
        ),
    ]
