from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils.text import slugify

FEATURED_RANK_MIN = 1
FEATURED_RANK_MAX = 50

# Homepage section -> rank column on Course
FEATURED_SECTIONS = {
    'POPULAR': 'popular_rank',
    'LEVEL45': 'level45_rank',
    'LEVEL7': 'level7_rank',
}


def rank_field():
    return models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(FEATURED_RANK_MIN), MaxValueValidator(FEATURED_RANK_MAX)],
    )


class CourseQuerySet(models.QuerySet):
    def published(self):
        return self.filter(is_published=True)

    def catalog_order(self):
        return self.order_by('category', 'sort_order', 'title')

    def with_fee(self):
        return self.select_related('fee')


class Course(models.Model):
    """A course in the public catalog"""
    slug = models.SlugField(max_length=200, unique=True)
    title = models.CharField(max_length=255)
    short_description = models.CharField(max_length=500, blank=True)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=100, blank=True, db_index=True)
    level = models.CharField(max_length=50, blank=True)
    duration = models.CharField(max_length=100, blank=True)
    study_mode = models.CharField(max_length=100, blank=True)
    sort_order = models.IntegerField(default=0)
    is_published = models.BooleanField(default=False, db_index=True)

    popular_rank = rank_field()
    level45_rank = rank_field()
    level7_rank = rank_field()

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CourseQuerySet.as_manager()

    class Meta:
        ordering = ['category', 'sort_order', 'title']
        verbose_name = "Course"
        verbose_name_plural = "Courses"

    def __str__(self):
        return self.title

    @staticmethod
    def slug_for(title):
        return slugify(title or '')[:200]

    def featured_ranks(self):
        return {section: getattr(self, column) for section, column in FEATURED_SECTIONS.items()}

    @property
    def active_fee(self):
        try:
            fee = self.fee
        except CourseFee.DoesNotExist:
            return None
        return fee if fee.is_active else None


class CourseFee(models.Model):
    """Tuition fee for a course; one row per course"""
    LEVEL_CHOICES = [
        ('VOCATIONAL', 'Vocational'),
        ('LEVEL3', 'Level 3'),
        ('LEVEL4_5', 'Level 4/5'),
        ('LEVEL7', 'Level 7'),
    ]

    course = models.OneToOneField(Course, on_delete=models.CASCADE, related_name='fee')
    level = models.CharField(max_length=20, choices=LEVEL_CHOICES)
    amount_pence = models.PositiveIntegerField(default=0)
    currency = models.CharField(max_length=3, default='GBP')
    note = models.CharField(max_length=255, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Course Fee"
        verbose_name_plural = "Course Fees"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(is_active=False) | models.Q(amount_pence__gt=0),
                name='course_fee_active_positive',
            ),
        ]

    def __str__(self):
        return f"{self.course.slug}: {self.amount_pence / 100:.2f} {self.currency}"
