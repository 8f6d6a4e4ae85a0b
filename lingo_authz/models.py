"""
Persistence for the authorization engine.

``ResourcePolicy`` rows are edited by tenant administrators in the back office
and only read by the engine.
"""

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models


class ResourcePolicy(models.Model):
    """Deny-first policy applied on top of role grants for one resource type."""

    EFFECT_ALLOW = "allow"
    EFFECT_DENY = "deny"
    EFFECT_CHOICES = (
        (EFFECT_ALLOW, "Allow"),
        (EFFECT_DENY, "Deny"),
    )

    name = models.CharField(max_length=200)
    resource = models.CharField(
        max_length=100,
        help_text="Subject this policy applies to (e.g. 'Lesson')",
    )
    action = models.CharField(max_length=50, blank=True, null=True)
    effect = models.CharField(max_length=10, choices=EFFECT_CHOICES, default=EFFECT_ALLOW)
    conditions = models.JSONField(
        blank=True,
        null=True,
        help_text="Condition template; may use ${ctx.userId}, ${ctx.tenantId}, ${publicTenantId}",
    )
    priority = models.IntegerField(default=0)
    tenant_id = models.CharField(
        max_length=100,
        blank=True,
        null=True,
        db_index=True,
        help_text="Owning tenant; empty means the policy is global",
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        app_label = "lingo_authz"
        ordering = ["-priority", "-created_at"]
        indexes = [
            models.Index(
                fields=["resource", "is_active", "tenant_id"],
                name="lingo_authz_policy_lookup",
            ),
        ]
        verbose_name = "resource policy"
        verbose_name_plural = "resource policies"

    def __str__(self) -> str:
        scope = self.tenant_id or "global"
        return f"{self.name} ({self.effect} {self.resource}, {scope})"

    def clean(self):
        super().clean()
        if self.tenant_id == "":
            self.tenant_id = None
        if self.conditions is not None and not isinstance(self.conditions, dict):
            raise ValidationError({"conditions": "Conditions must be a JSON object."})
