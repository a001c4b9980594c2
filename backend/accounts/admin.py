from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from .models import Company, User


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    fieldsets = (
        (None, {"fields": ("email", "password", "name")}),
        ("Role", {"fields": ("role", "company")}),
        ("Permissions", {"fields": ("is_active", "is_staff", "is_superuser", "groups", "user_permissions")}),
        ("Important dates", {"fields": ("last_login", "date_joined")}),
    )
    add_fieldsets = (
        (None, {"classes": ("wide",), "fields": ("email", "name", "role", "company", "password1", "password2")}),
    )
    list_display = ("email", "name", "role", "company", "is_staff")
    list_filter = ("role", "is_staff")
    search_fields = ("email", "name")
    ordering = ("email",)


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "owner", "is_active")
    search_fields = ("name", "slug", "owner__email")
    readonly_fields = ("public_id",)
