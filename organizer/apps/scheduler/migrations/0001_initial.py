from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Item',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(choices=[('task', 'Task'), ('meeting', 'Meeting'), ('school', 'School')], max_length=16)),
                ('title', models.CharField(max_length=200)),
                ('details', models.TextField(blank=True, default='')),
                ('status', models.CharField(choices=[('not_started', 'Not started'), ('in_progress', 'In progress'), ('completed', 'Completed'), ('blocked', 'Blocked')], default='not_started', max_length=16)),
                ('priority', models.CharField(choices=[('urgent', 'Urgent'), ('high', 'High'), ('medium', 'Medium'), ('low', 'Low')], default='medium', max_length=16)),
                ('tags', models.JSONField(blank=True, default=list)),
                ('due_at', models.DateTimeField(blank=True, null=True)),
                ('start_at', models.DateTimeField(blank=True, null=True)),
                ('end_at', models.DateTimeField(blank=True, null=True)),
                ('estimated_minutes', models.PositiveIntegerField(blank=True, null=True)),
                ('buffer_before', models.PositiveIntegerField(default=0)),
                ('buffer_after', models.PositiveIntegerField(default=0)),
                ('recurrence_rule', models.CharField(blank=True, default='', max_length=64)),
                ('recurrence_end', models.DateTimeField(blank=True, null=True)),
                ('course_id', models.CharField(blank=True, default='', max_length=64)),
                ('project_id', models.CharField(blank=True, default='', max_length=64)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('original_item', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='instances', to='scheduler.item')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'item',
                'ordering': ['created_at'],
                'indexes': [
                    models.Index(fields=['user', 'start_at'], name='item_user_start_idx'),
                    models.Index(fields=['user', 'due_at'], name='item_user_due_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('original_item', 'due_at'), name='unique_instance_per_due_at'),
                ],
            },
        ),
    ]
