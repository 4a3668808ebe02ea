"""
Admin for the tenant directory.

Tenants are created with the provision_tenant command, never from the
admin: a Tenant row without its schema, counter and chart is unusable.
Storage fields are read-only because they are immutable once provisioned.
"""
from django.contrib import admin, messages
from django.db.models import Count

from tenant.models import Tenant, TenantMembership


class MembershipInline(admin.TabularInline):
    model = TenantMembership
    extra = 0
    raw_id_fields = ["user"]
    fields = ["user", "role", "is_active"]


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ["slug", "name", "storage", "status", "member_count", "created_at"]
    list_filter = ["status", "db_alias"]
    search_fields = ["slug", "name", "schema_name"]
    readonly_fields = ["public_id", "schema_name", "db_alias", "created_at", "updated_at"]
    inlines = [MembershipInline]
    actions = ["suspend", "reactivate"]

    fieldsets = (
        (None, {"fields": ("slug", "name", "public_id", "status")}),
        ("Ledger storage", {"fields": ("db_alias", "schema_name")}),
        ("Timestamps", {"fields": ("created_at", "updated_at"), "classes": ("collapse",)}),
    )

    def get_queryset(self, request):
        return super().get_queryset(request).annotate(_members=Count("memberships"))

    @admin.display(description="Storage")
    def storage(self, obj):
        return f"{obj.db_alias}.{obj.schema_name}"

    @admin.display(description="Members", ordering="_members")
    def member_count(self, obj):
        return obj._members

    @admin.action(description="Suspend selected tenants")
    def suspend(self, request, queryset):
        count = queryset.update(status=Tenant.Status.SUSPENDED)
        self.message_user(request, f"Suspended {count} tenant(s).", messages.WARNING)

    @admin.action(description="Reactivate selected tenants")
    def reactivate(self, request, queryset):
        count = queryset.update(status=Tenant.Status.ACTIVE)
        self.message_user(request, f"Reactivated {count} tenant(s).")

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        # Only suspended tenants; the schema is dropped separately
        if obj and obj.status != Tenant.Status.SUSPENDED:
            return False
        return super().has_delete_permission(request, obj)


@admin.register(TenantMembership)
class TenantMembershipAdmin(admin.ModelAdmin):
    list_display = ["tenant", "user", "role", "is_active"]
    list_filter = ["role", "is_active"]
    search_fields = ["tenant__slug", "user__username"]
    raw_id_fields = ["user"]
