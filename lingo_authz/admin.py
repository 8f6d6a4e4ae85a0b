"""
Admin registrations for the authorization engine.
"""

from __future__ import annotations

import json

from django import forms
from django.contrib import admin
from django.forms.widgets import Textarea

from lingo_authz.models import ResourcePolicy


class PrettyJSONWidget(Textarea):
    """Pretty-print JSON in admin textareas."""

    def __init__(self, *args, **kwargs):
        attrs = {"rows": 8, "cols": 90}
        attrs.update(kwargs.pop("attrs", {}))
        super().__init__(attrs=attrs)

    def format_value(self, value):
        if value in (None, ""):
            return ""
        if isinstance(value, str):
            return value
        try:
            return json.dumps(value, indent=2, sort_keys=True)
        except (TypeError, ValueError):
            return super().format_value(value)


class ResourcePolicyAdminForm(forms.ModelForm):
    class Meta:
        model = ResourcePolicy
        fields = "__all__"
        widgets = {"conditions": PrettyJSONWidget()}


@admin.register(ResourcePolicy)
class ResourcePolicyAdmin(admin.ModelAdmin):
    form = ResourcePolicyAdminForm
    list_display = ("name", "resource", "effect", "priority", "tenant_id", "is_active", "updated_at")
    list_filter = ("effect", "is_active", "resource")
    search_fields = ("name", "resource", "tenant_id")
    ordering = ("-priority", "-created_at")
