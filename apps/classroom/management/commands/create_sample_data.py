from datetime import timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from apps.classroom.models import Announcement, Assignment, Category, User
from apps.classroom.policies import Actor
from apps.classroom.services import AccountService


class Command(BaseCommand):
    help = 'Creates sample accounts, assignments and an announcement for trying the API'

    def handle(self, *args, **kwargs):
        self.stdout.write('Creating sample data...')

        accounts = AccountService()
        students = {}
        for username, email, first_name, last_name in [
            ('student1', 'student1@test.com', 'Alice', 'Johnson'),
            ('student2', 'student2@test.com', 'Bob', 'Smith'),
        ]:
            user = User.objects.filter(username=username).first()
            if user is None:
                user = accounts.register(
                    Actor.anonymous(),
                    username=username,
                    email=email,
                    password='testpass123',
                    first_name=first_name,
                    last_name=last_name
                )
                self.stdout.write(self.style.SUCCESS(f'Created user: {username}'))
            students[username] = user

        now = timezone.now()

        # Assignments are staff-authored, so they are written directly
        Assignment.objects.get_or_create(
            title='Cell Biology Lab Report',
            defaults={
                'description': 'Write up the microscopy lab. Attach your observations as a PDF.',
                'due_at': now + timedelta(days=7),
            }
        )
        Assignment.objects.get_or_create(
            title='Sorting Algorithms Essay',
            defaults={
                'description': 'Compare quicksort and mergesort. This one is already past due.',
                'due_at': now - timedelta(days=1),
            }
        )
        self.stdout.write(self.style.SUCCESS('Created 2 assignments (one open, one overdue)'))

        important = Category.objects.filter(
            kind=Category.Kind.ANNOUNCEMENT, name='Important'
        ).first()
        Announcement.objects.get_or_create(
            owner=students['student1'],
            title='Study group on Thursday',
            defaults={
                'body': 'Meeting in the library at 5pm to go over the lab report.',
                'category': important,
            }
        )
        self.stdout.write(self.style.SUCCESS('Created 1 announcement'))

        self.stdout.write(self.style.SUCCESS('Sample data created successfully!'))
        self.stdout.write('Test credentials: username=student1, password=testpass123')
