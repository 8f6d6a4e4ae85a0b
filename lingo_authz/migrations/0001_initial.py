from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='ResourcePolicy',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('resource', models.CharField(help_text="Subject this policy applies to (e.g. 'Lesson')", max_length=100)),
                ('action', models.CharField(blank=True, max_length=50, null=True)),
                ('effect', models.CharField(choices=[('allow', 'Allow'), ('deny', 'Deny')], default='allow', max_length=10)),
                ('conditions', models.JSONField(blank=True, help_text='Condition template; may use ${ctx.userId}, ${ctx.tenantId}, ${publicTenantId}', null=True)),
                ('priority', models.IntegerField(default=0)),
                ('tenant_id', models.CharField(blank=True, db_index=True, help_text='Owning tenant; empty means the policy is global', max_length=100, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'resource policy',
                'verbose_name_plural': 'resource policies',
                'ordering': ['-priority', '-created_at'],
                'indexes': [models.Index(fields=['resource', 'is_active', 'tenant_id'], name='lingo_authz_policy_lookup')],
            },
        ),
    ]
