from django.core.files.uploadedfile import SimpleUploadedFile

from apps.classroom.policies import Actor
from apps.classroom.services import AccountService

# Attachments kept in memory so tests never touch MEDIA_ROOT
TEST_STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.InMemoryStorage'},
    'attachments': {'BACKEND': 'django.core.files.storage.InMemoryStorage'},
    'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'},
}


def make_user(username):
    return AccountService().register(
        Actor.anonymous(),
        username=username,
        email=f'{username}@test.com',
        password='testpass123',
        first_name=username.capitalize(),
        last_name='Test'
    )


def actor_for(user):
    return Actor.from_user(user)


def upload(name='notes.pdf', content=b'%PDF-1.4 sample', content_type='application/pdf'):
    return SimpleUploadedFile(name, content, content_type=content_type)
