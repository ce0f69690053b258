from django.db import migrations

DEFAULT_CATEGORIES = [
    ('General', 'note'),
    ('Mathematics', 'note'),
    ('Science', 'note'),
    ('History', 'note'),
    ('Languages', 'note'),
    ('Important', 'announcement'),
    ('Event', 'announcement'),
    ('Study Material', 'announcement'),
]


def seed_categories(apps, schema_editor):
    Category = apps.get_model('classroom', 'Category')
    for name, kind in DEFAULT_CATEGORIES:
        Category.objects.get_or_create(name=name, kind=kind)


def remove_categories(apps, schema_editor):
    Category = apps.get_model('classroom', 'Category')
    for name, kind in DEFAULT_CATEGORIES:
        Category.objects.filter(name=name, kind=kind).delete()


class Migration(migrations.Migration):

    dependencies = [
        ('classroom', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(seed_categories, remove_categories),
    ]
