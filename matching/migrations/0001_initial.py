import uuid

import django.core.validators
import django.db.models.deletion
import django.db.models.functions.text
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Brand',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True)),
                ('website', models.URLField(blank=True, max_length=500)),
                ('industry', models.CharField(blank=True, max_length=100)),
                ('category', models.CharField(blank=True, max_length=100)),
                ('tags', models.JSONField(blank=True, default=list)),
                ('social_media', models.JSONField(blank=True, default=dict)),
                ('contact_info', models.JSONField(blank=True, default=dict, help_text='{"contactPerson": ..., "email": ..., "phone": ...}')),
                ('company_size', models.CharField(blank=True, choices=[('startup', 'Startup'), ('small', 'Small'), ('medium', 'Medium'), ('large', 'Large'), ('enterprise', 'Enterprise')], max_length=20)),
                ('location', models.CharField(blank=True, max_length=255)),
                ('target_audience', models.TextField(blank=True)),
                ('preferred_content_types', models.JSONField(blank=True, default=list)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Brand',
                'verbose_name_plural': 'Brands',
                'ordering': ['name'],
                'constraints': [models.UniqueConstraint(django.db.models.functions.text.Lower('name'), name='matching_brand_name_ci_unique')],
            },
        ),
        migrations.CreateModel(
            name='Niche',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100, unique=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('users', models.ManyToManyField(blank=True, related_name='niches', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Niche',
                'verbose_name_plural': 'Niches',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='CreatorProfile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('country', models.CharField(help_text='ISO-3 code or country name', max_length=100)),
                ('timezone', models.CharField(blank=True, max_length=64)),
                ('primary_languages', models.JSONField(blank=True, default=list)),
                ('content_languages', models.JSONField(blank=True, default=list)),
                ('primary_platforms', models.JSONField(blank=True, default=list)),
                ('audience_sizes', models.JSONField(blank=True, default=dict, help_text='Platform -> audience size bucket')),
                ('average_views', models.JSONField(blank=True, default=dict, help_text='Platform -> average view bucket')),
                ('top_niches', models.JSONField(default=list, help_text='1-3 niches, highest priority first')),
                ('brand_categories', models.JSONField(blank=True, default=list)),
                ('deal_types', models.JSONField(blank=True, default=list)),
                ('minimum_rates', models.JSONField(blank=True, default=dict, help_text='Platform -> minimum rate in preferred currency')),
                ('preferred_currency', models.CharField(default='USD', max_length=3)),
                ('accepts_international_brands', models.BooleanField(default=True)),
                ('shipping_preference', models.CharField(choices=[('digital_only', 'Digital only'), ('domestic_shipping', 'Domestic shipping'), ('international_shipping', 'International shipping')], default='digital_only', max_length=30)),
                ('onboarding_completed', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='creator_profile', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Creator Profile',
                'verbose_name_plural': 'Creator Profiles',
            },
        ),
        migrations.CreateModel(
            name='BrandMatch',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('source', models.CharField(default='manual', max_length=100)),
                ('brand_name', models.CharField(max_length=255)),
                ('fit_reason', models.TextField(blank=True)),
                ('outreach_draft', models.TextField(blank=True)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('sent', 'Sent'), ('contacted', 'Contacted'), ('interested', 'Interested'), ('accepted', 'Accepted'), ('rejected', 'Rejected'), ('completed', 'Completed')], default='draft', max_length=20)),
                ('match_score', models.PositiveSmallIntegerField(default=0, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(100)])),
                ('deal_type', models.CharField(blank=True, max_length=100)),
                ('estimated_rate', models.CharField(blank=True, max_length=100)),
                ('brand_country', models.CharField(blank=True, max_length=100)),
                ('requires_shipping', models.BooleanField(default=False)),
                ('brand_website', models.CharField(blank=True, max_length=500)),
                ('brand_email', models.CharField(blank=True, max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('brand', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='brand_matches', to='matching.brand')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='brand_matches', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Brand Match',
                'verbose_name_plural': 'Brand Matches',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['user', 'created_at'], name='matching_bm_user_created_idx'),
                    models.Index(fields=['user', 'status'], name='matching_bm_user_status_idx'),
                ],
            },
        ),
    ]
