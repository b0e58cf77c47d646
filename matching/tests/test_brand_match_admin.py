"""
Tests for matching/admin.py

Completed brand matches are frozen in the admin as well as in the API.
"""

import os
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.test_settings')

import pytest
from django.urls import reverse

from matching.models import BrandMatch


def change_form_fields(client, match):
    response = client.get(reverse('admin:matching_brandmatch_change', args=[match.pk]))
    assert response.status_code == 200
    return response.context['adminform'].form.fields


@pytest.mark.django_db
class TestBrandMatchAdmin:

    def test_draft_match_is_editable(self, admin_client, creator):
        match = BrandMatch.objects.create(user=creator, brand_name='Acme', fit_reason='x')
        fields = change_form_fields(admin_client, match)
        assert 'status' in fields
        assert 'brand_name' in fields

    def test_completed_match_is_read_only(self, admin_client, creator):
        match = BrandMatch.objects.create(
            user=creator, brand_name='Acme', fit_reason='x', status=BrandMatch.Status.COMPLETED,
        )
        assert change_form_fields(admin_client, match) == {}

    def test_bulk_action_skips_completed(self, admin_client, creator):
        done = BrandMatch.objects.create(
            user=creator, brand_name='Done', fit_reason='x', status=BrandMatch.Status.COMPLETED,
        )
        draft = BrandMatch.objects.create(user=creator, brand_name='Draft', fit_reason='x')

        admin_client.post(reverse('admin:matching_brandmatch_changelist'), {
            'action': 'mark_contacted',
            '_selected_action': [str(done.pk), str(draft.pk)],
        })

        done.refresh_from_db()
        draft.refresh_from_db()
        assert done.status == BrandMatch.Status.COMPLETED
        assert draft.status == BrandMatch.Status.CONTACTED
