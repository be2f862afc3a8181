# Initial schema for the course catalog and fees

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


def rank_field():
    return models.PositiveSmallIntegerField(blank=True, null=True, validators=[
        django.core.validators.MinValueValidator(1),
        django.core.validators.MaxValueValidator(50),
    ])


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Course',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('slug', models.SlugField(max_length=200, unique=True)),
                ('title', models.CharField(max_length=255)),
                ('short_description', models.CharField(blank=True, max_length=500)),
                ('description', models.TextField(blank=True)),
                ('category', models.CharField(blank=True, db_index=True, max_length=100)),
                ('level', models.CharField(blank=True, max_length=50)),
                ('duration', models.CharField(blank=True, max_length=100)),
                ('study_mode', models.CharField(blank=True, max_length=100)),
                ('sort_order', models.IntegerField(default=0)),
                ('is_published', models.BooleanField(db_index=True, default=False)),
                ('popular_rank', rank_field()),
                ('level45_rank', rank_field()),
                ('level7_rank', rank_field()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Course',
                'verbose_name_plural': 'Courses',
                'ordering': ['category', 'sort_order', 'title'],
            },
        ),
        migrations.CreateModel(
            name='CourseFee',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('level', models.CharField(choices=[
                    ('VOCATIONAL', 'Vocational'),
                    ('LEVEL3', 'Level 3'),
                    ('LEVEL4_5', 'Level 4/5'),
                    ('LEVEL7', 'Level 7'),
                ], max_length=20)),
                ('amount_pence', models.PositiveIntegerField(default=0)),
                ('currency', models.CharField(default='GBP', max_length=3)),
                ('note', models.CharField(blank=True, max_length=255)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('course', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='fee', to='courses.course')),
            ],
            options={
                'verbose_name': 'Course Fee',
                'verbose_name_plural': 'Course Fees',
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('is_active', False), ('amount_pence__gt', 0), _connector='OR'), name='course_fee_active_positive'),
                ],
            },
        ),
    ]
