# users/admin.py
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import EmailVerificationToken, PasswordResetAttempt, PasswordResetToken, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Email-based user admin; role flags are read-only here and change through the approval gate"""
    list_display = ('email', 'first_name', 'last_name', 'role', 'email_verified_at', 'created_at')
    list_filter = ('is_admin', 'is_super_admin', 'is_active', 'created_at')
    search_fields = ('email', 'first_name', 'last_name')
    ordering = ('-created_at',)
    readonly_fields = ('is_admin', 'is_super_admin', 'email_verified_at', 'admin_second_factor_hash',
                       'last_login', 'date_joined', 'created_at', 'updated_at')

    fieldsets = (
        (None, {'fields': ('email', 'password')}),
        (_('Personal info'), {'fields': ('first_name', 'last_name', 'phone_number', 'date_of_birth')}),
        (_('Back office'), {
            'fields': ('is_admin', 'is_super_admin', 'email_verified_at', 'admin_second_factor_hash'),
        }),
        (_('Permissions'), {
            'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions'),
        }),
        (_('Important dates'), {'fields': ('last_login', 'date_joined', 'created_at', 'updated_at')}),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'first_name', 'last_name', 'password1', 'password2'),
        }),
    )


@admin.register(EmailVerificationToken)
class EmailVerificationTokenAdmin(admin.ModelAdmin):
    list_display = ('user', 'expires_at', 'created_at')
    search_fields = ('user__email',)
    readonly_fields = ('user', 'token_hash', 'expires_at', 'created_at')
    ordering = ('-created_at',)


@admin.register(PasswordResetToken)
class PasswordResetTokenAdmin(admin.ModelAdmin):
    list_display = ('user', 'expires_at', 'used_at', 'created_at')
    search_fields = ('user__email',)
    readonly_fields = ('user', 'token_hash', 'expires_at', 'used_at', 'created_at')
    ordering = ('-created_at',)


@admin.register(PasswordResetAttempt)
class PasswordResetAttemptAdmin(admin.ModelAdmin):
    list_display = ('email', 'user', 'ip_address', 'created_at')
    search_fields = ('email', 'ip_address')
    readonly_fields = ('user', 'email', 'ip_address', 'created_at')
    ordering = ('-created_at',)
