import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Relationship',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('status', models.PositiveSmallIntegerField(choices=[(0, 'Pending'), (1, 'Confirmed'), (2, 'Rejected'), (3, 'Deleted')], default=0)),
                ('user_low', models.BigIntegerField(editable=False)),
                ('user_high', models.BigIntegerField(editable=False)),
                ('initiator', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='relationships_initiated', to=settings.AUTH_USER_MODEL)),
                ('target', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='relationships_received', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['target', 'status'], name='friends_target_status_idx'),
                    models.Index(fields=['initiator', 'status'], name='friends_initiator_status_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('user_low', 'user_high'), name='uq_relationship_pair'),
                    models.CheckConstraint(condition=models.Q(('initiator', models.F('target')), _negated=True), name='ck_relationship_distinct_users'),
                ],
            },
        ),
    ]
