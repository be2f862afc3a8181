from django.contrib import admin

from .models import Application, ApplicationAttachment, ApplicationCounter, Enquiry, EnquiryCounter


class ApplicationAttachmentInline(admin.TabularInline):
    model = ApplicationAttachment
    extra = 0
    readonly_fields = ('file_name', 'mime_type', 'size_bytes', 's3_key', 's3_url', 'created_at')
    can_delete = False


@admin.register(Application)
class ApplicationAdmin(admin.ModelAdmin):
    list_display = ('application_ref', 'first_name', 'last_name', 'email', 'application_type', 'status', 'created_at')
    list_filter = ('status', 'application_type', 'created_at')
    search_fields = ('application_ref', 'first_name', 'last_name', 'email')
    readonly_fields = ('application_ref', 'user', 'created_at', 'updated_at')
    ordering = ('-created_at',)
    inlines = [ApplicationAttachmentInline]


@admin.register(Enquiry)
class EnquiryAdmin(admin.ModelAdmin):
    list_display = ('enquiry_ref', 'full_name', 'email', 'enquiry_type', 'status', 'created_at')
    list_filter = ('enquiry_type', 'status', 'created_at')
    search_fields = ('enquiry_ref', 'full_name', 'email', 'message')
    readonly_fields = ('enquiry_ref', 'ip_address', 'user_agent', 'created_at', 'updated_at')
    ordering = ('-created_at',)


@admin.register(EnquiryCounter, ApplicationCounter)
class CounterAdmin(admin.ModelAdmin):
    """Counters are inspected only; editing them would break reference uniqueness"""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
