from django.contrib import admin

from .models import Course, CourseFee


class CourseFeeInline(admin.StackedInline):
    model = CourseFee
    extra = 0


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ('title', 'slug', 'category', 'level', 'is_published', 'popular_rank', 'sort_order')
    list_filter = ('is_published', 'category', 'level')
    search_fields = ('title', 'slug', 'short_description', 'category')
    prepopulated_fields = {'slug': ('title',)}
    ordering = ('category', 'sort_order', 'title')
    inlines = [CourseFeeInline]


@admin.register(CourseFee)
class CourseFeeAdmin(admin.ModelAdmin):
    list_display = ('course', 'level', 'amount_pence', 'currency', 'is_active')
    list_filter = ('level', 'is_active', 'currency')
    search_fields = ('course__title', 'course__slug')
