import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('matching', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Deal',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(max_length=255)),
                ('status', models.CharField(choices=[('PROSPECT', 'Prospect'), ('OUTREACH_SENT', 'Outreach sent'), ('NEGOTIATION', 'Negotiation'), ('AGREEMENT_LOCKED', 'Agreement locked'), ('INVOICED', 'Invoiced'), ('PAID', 'Paid'), ('DECLINED', 'Declined')], default='PROSPECT', max_length=20)),
                ('proposed_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('agreed_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('outreach_sent_at', models.DateTimeField(blank=True, null=True)),
                ('negotiation_started_at', models.DateTimeField(blank=True, null=True)),
                ('agreement_locked_at', models.DateTimeField(blank=True, null=True)),
                ('invoiced_at', models.DateTimeField(blank=True, null=True)),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('closed_at', models.DateTimeField(blank=True, null=True)),
                ('terms_snapshot', models.JSONField(blank=True, help_text='Latest locked terms: version, locked_at, price, deliverables, ...', null=True)),
                ('terms_history', models.JSONField(blank=True, default=list, help_text='Superseded terms snapshots, oldest first')),
                ('lost_reason', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('brand', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='deals', to='matching.brand')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='deals', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Deal',
                'verbose_name_plural': 'Deals',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['user', 'status'], name='deals_deal_user_status_idx'),
                    models.Index(fields=['user', 'created_at'], name='deals_deal_user_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Invoice',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('brand_name', models.CharField(max_length=255)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12)),
                ('currency', models.CharField(default='USD', max_length=3)),
                ('status', models.CharField(choices=[('unpaid', 'Unpaid'), ('sent', 'Sent'), ('paid', 'Paid'), ('void', 'Void'), ('refunded', 'Refunded')], default='unpaid', max_length=10)),
                ('payment_method_type', models.CharField(choices=[('STRIPE_ADMIN', 'Platform hosted'), ('CUSTOM_LINK', 'Custom link')], default='STRIPE_ADMIN', max_length=20)),
                ('custom_payment_link', models.URLField(blank=True, max_length=500)),
                ('custom_payment_instructions', models.TextField(blank=True)),
                ('payment_method', models.CharField(blank=True, max_length=50)),
                ('payment_reference', models.CharField(blank=True, max_length=255)),
                ('sent_at', models.DateTimeField(blank=True, null=True)),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('deal', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='invoices', to='deals.deal')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='invoices', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Invoice',
                'verbose_name_plural': 'Invoices',
                'ordering': ['-created_at'],
            },
        ),
        migrations.AddField(
            model_name='deal',
            name='invoice',
            field=models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='deals.invoice'),
        ),
        migrations.CreateModel(
            name='DealActivity',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(max_length=50)),
                ('message', models.CharField(max_length=500)),
                ('actor', models.CharField(blank=True, max_length=255)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('deal', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='activities', to='deals.deal')),
            ],
            options={
                'verbose_name': 'Deal Activity',
                'verbose_name_plural': 'Deal Activities',
                'ordering': ['-created_at', '-id'],
            },
        ),
        migrations.CreateModel(
            name='ConversationLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('channel', models.CharField(choices=[('EMAIL', 'Email'), ('IG_DM', 'Instagram DM'), ('X_DM', 'X DM'), ('DISCORD', 'Discord'), ('OTHER', 'Other')], max_length=10)),
                ('direction', models.CharField(choices=[('OUTBOUND', 'Outbound'), ('INBOUND', 'Inbound')], max_length=10)),
                ('occurred_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('summary', models.TextField()),
                ('disposition', models.CharField(choices=[('NO_REPLY', 'No reply'), ('INTERESTED', 'Interested'), ('DECLINED', 'Declined'), ('NEEDS_INFO', 'Needs info'), ('COUNTER', 'Counter offer')], max_length=12)),
                ('amount_discussed', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('terms_delta', models.TextField(blank=True)),
                ('attachments', models.JSONField(blank=True, default=list)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('deal', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='conversations', to='deals.deal')),
            ],
            options={
                'verbose_name': 'Conversation Log',
                'verbose_name_plural': 'Conversation Logs',
                'ordering': ['-occurred_at', '-created_at'],
            },
        ),
    ]
