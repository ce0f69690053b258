"""
HTTP surface: authentication, status codes and the submission flow end to end.
"""
from datetime import timedelta
from unittest import mock

from django.core.files.storage import storages
from django.test import override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.classroom.models import Assignment, Category, Note, Profile, Submission, User
from apps.classroom.serializers import AssignmentSerializer
from apps.classroom.views import AssignmentDetailView, AssignmentListView

from .helpers import TEST_STORAGES, make_user, upload


class AuthenticationTestCase(APITestCase):
    """Test authentication flows."""

    def test_user_registration(self):
        """Registration returns a token and creates the profile row."""
        data = {
            'username': 'testuser',
            'email': 'test@example.com',
            'password': 'securepass123',
            'first_name': 'Test',
            'last_name': 'User'
        }
        response = self.client.post('/api/auth/register/', data)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('token', response.data)
        user = User.objects.get(username='testuser')
        self.assertTrue(Profile.objects.filter(pk=user.pk, email='test@example.com').exists())

    def test_duplicate_email_rejected(self):
        make_user('student1')
        data = {
            'username': 'someoneelse',
            'email': 'student1@test.com',
            'password': 'securepass123',
        }
        response = self.client.post('/api/auth/register/', data)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_user_login(self):
        make_user('testuser')
        data = {'username': 'testuser', 'password': 'testpass123'}
        response = self.client.post('/api/auth/login/', data)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('token', response.data)

    def test_anonymous_requests_rejected(self):
        for url in ['/api/notes/', '/api/announcements/', '/api/assignments/',
                    '/api/categories/', '/api/feedback/', '/api/profile/', '/api/dashboard/']:
            response = self.client.get(url)
            self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED, url)

    def test_account_deletion(self):
        user = make_user('student1')
        self.client.force_authenticate(user=user)
        response = self.client.delete('/api/auth/account/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(User.objects.filter(pk=user.pk).exists())


@override_settings(STORAGES=TEST_STORAGES)
class ContentAccessTestCase(APITestCase):

    def setUp(self):
        self.user1 = make_user('student1')
        self.user2 = make_user('student2')

    def test_note_scenario(self):
        """Only the owner deletes a note; afterwards it is gone for the owner too."""
        self.client.force_authenticate(user=self.user1)
        response = self.client.post('/api/notes/', {'title': 'Week 1', 'body': 'Cells'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNone(response.data['category'])
        note_id = response.data['id']

        self.client.force_authenticate(user=self.user2)
        response = self.client.delete(f'/api/notes/{note_id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.user1)
        response = self.client.delete(f'/api/notes/{note_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

        response = self.client.get(f'/api/notes/{note_id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_note_category_must_be_a_note_category(self):
        event = Category.objects.get(name='Event', kind=Category.Kind.ANNOUNCEMENT)
        self.client.force_authenticate(user=self.user1)
        response = self.client.post(
            '/api/notes/', {'title': 'x', 'body': 'y', 'category': str(event.pk)}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_note_list_shows_only_own_notes(self):
        Note.objects.create(owner=self.user1, title='Mine', body='...')
        Note.objects.create(owner=self.user2, title='Theirs', body='...')

        self.client.force_authenticate(user=self.user1)
        response = self.client.get('/api/notes/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([n['title'] for n in response.data['results']], ['Mine'])

    def test_malformed_category_filter_is_bad_request(self):
        self.client.force_authenticate(user=self.user1)
        response = self.client.get('/api/notes/', {'category': 'not-a-uuid'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('category', response.data)

    def test_category_filter(self):
        science = Category.objects.get(name='Science', kind=Category.Kind.NOTE)
        Note.objects.create(owner=self.user1, title='Cells', body='...', category=science)
        Note.objects.create(owner=self.user1, title='Loose', body='...')

        self.client.force_authenticate(user=self.user1)
        response = self.client.get('/api/notes/', {'category': str(science.pk)})
        self.assertEqual([n['title'] for n in response.data['results']], ['Cells'])

    def test_note_search_stays_within_own_notes(self):
        Note.objects.create(owner=self.user1, title='Photosynthesis', body='Light reactions')
        Note.objects.create(owner=self.user1, title='Week 2', body='More on photosynthesis')
        Note.objects.create(owner=self.user1, title='Algebra', body='Quadratics')
        Note.objects.create(owner=self.user2, title='Photosynthesis too', body='...')

        self.client.force_authenticate(user=self.user1)
        response = self.client.get('/api/notes/', {'search': 'photosynthesis'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            sorted(n['title'] for n in response.data['results']), ['Photosynthesis', 'Week 2']
        )

    def test_announcement_search_matches_title_or_body(self):
        self.client.force_authenticate(user=self.user2)
        for title, body in [('Exam moved', 'To Friday'), ('Trip', 'Bring your exam notes'), ('Club', 'Chess')]:
            self.client.post('/api/announcements/', {'title': title, 'body': body}, format='json')

        self.client.force_authenticate(user=self.user1)
        response = self.client.get('/api/announcements/', {'search': 'exam'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(sorted(a['title'] for a in response.data['results']), ['Exam moved', 'Trip'])

    def test_note_upload_and_shared_download(self):
        self.client.force_authenticate(user=self.user1)
        response = self.client.post(
            '/api/notes/',
            {'title': 'Slides', 'body': 'Week 2', 'file': upload('slides.pdf')},
            format='multipart'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        attachment = response.data['attachment']
        self.assertEqual(attachment['name'], 'slides.pdf')
        self.assertTrue(attachment['path'].startswith(f'{self.user1.pk}/'))

        # Attachments are readable by any signed-in account
        self.client.force_authenticate(user=self.user2)
        response = self.client.get(f"/api/attachments/{attachment['path']}")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(b''.join(response.streaming_content), b'%PDF-1.4 sample')

    @override_settings(ATTACHMENT_BROAD_READ=False)
    def test_narrow_attachment_read(self):
        self.client.force_authenticate(user=self.user1)
        response = self.client.post(
            '/api/notes/', {'title': 'Slides', 'body': '...', 'file': upload()}, format='multipart'
        )
        path = response.data['attachment']['path']

        self.client.force_authenticate(user=self.user2)
        response = self.client.get(f'/api/attachments/{path}')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_missing_attachment_is_not_found(self):
        self.client.force_authenticate(user=self.user1)
        response = self.client.get(f'/api/attachments/{self.user1.pk}/nothing.pdf')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_comment_cascade_scenario(self):
        self.client.force_authenticate(user=self.user1)
        response = self.client.post('/api/announcements/', {'title': 'Exam', 'body': 'Friday'}, format='json')
        announcement_id = response.data['id']

        self.client.force_authenticate(user=self.user2)
        response = self.client.post(
            f'/api/announcements/{announcement_id}/comments/', {'body': 'Thanks'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        comment_id = response.data['id']

        response = self.client.get(f'/api/announcements/{announcement_id}/')
        self.assertEqual(response.data['comment_count'], 1)
        self.assertEqual(response.data['author_name'], 'Student1 Test')

        self.client.force_authenticate(user=self.user1)
        response = self.client.delete(f'/api/announcements/{announcement_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

        self.client.force_authenticate(user=self.user2)
        response = self.client.get(f'/api/comments/{comment_id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_feedback_flow(self):
        self.client.force_authenticate(user=self.user1)
        response = self.client.post(
            '/api/feedback/',
            {'subject': 'Bug', 'message': 'Upload fails', 'type': 'bug', 'status': 'resolved'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'pending')

        response = self.client.post(
            '/api/feedback/', {'subject': 'x', 'message': 'y', 'type': 'rant'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_profile_update(self):
        self.client.force_authenticate(user=self.user1)
        response = self.client.patch('/api/profile/', {'first_name': 'Alice'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['first_name'], 'Alice')
        self.assertEqual(response.data['id'], str(self.user1.pk))


@override_settings(STORAGES=TEST_STORAGES)
class SubmissionFlowTestCase(APITestCase):

    def setUp(self):
        now = timezone.now()
        self.user1 = make_user('student1')
        self.user2 = make_user('student2')
        self.assignment = Assignment.objects.create(
            title='Lab Report', description='...', due_at=now + timedelta(days=3)
        )
        self.overdue = Assignment.objects.create(
            title='Essay', description='...', due_at=now - timedelta(days=1)
        )
        self.url = f'/api/assignments/{self.assignment.pk}/submission/'

    def test_draft_submit_and_lock(self):
        self.client.force_authenticate(user=self.user1)

        response = self.client.put(self.url, {'body': 'My report', 'file': upload()}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'draft')
        self.assertIsNotNone(response.data['attachment'])

        response = self.client.post(f'{self.url}submit/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'submitted')
        self.assertIsNotNone(response.data['submitted_at'])

        response = self.client.put(self.url, {'body': 'Changed my mind'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        response = self.client.delete(self.url)
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(Submission.objects.get().status, 'submitted')

    def test_submit_without_draft(self):
        self.client.force_authenticate(user=self.user1)
        response = self.client.post(f'{self.url}submit/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_cannot_start_overdue_assignment(self):
        self.client.force_authenticate(user=self.user1)
        response = self.client.put(
            f'/api/assignments/{self.overdue.pk}/submission/', {'body': 'Late'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertFalse(Submission.objects.exists())

    def test_cannot_view_other_student_submission(self):
        self.client.force_authenticate(user=self.user1)
        self.client.put(self.url, {'body': 'Mine'}, format='json')

        # The URL is per actor, so the other student simply has none
        self.client.force_authenticate(user=self.user2)
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_draft(self):
        self.client.force_authenticate(user=self.user1)
        response = self.client.put(self.url, {'body': 'Mine', 'file': upload()}, format='multipart')
        path = response.data['attachment']['path']

        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.delete(self.url)
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Submission.objects.exists())
        self.assertFalse(storages['attachments'].exists(path))

    @override_settings(ATTACHMENT_MAX_BYTES=10)
    def test_oversized_upload_rejected(self):
        self.client.force_authenticate(user=self.user1)
        response = self.client.put(
            self.url, {'body': 'Mine', 'file': upload('big.bin', b'x' * 11, 'application/octet-stream')},
            format='multipart'
        )
        self.assertEqual(response.status_code, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE)
        self.assertFalse(Submission.objects.exists())

    def test_assignment_list_shows_my_status(self):
        self.client.force_authenticate(user=self.user1)
        self.client.put(self.url, {'body': 'Mine'}, format='json')

        response = self.client.get('/api/assignments/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        by_title = {a['title']: a for a in response.data['results']}
        self.assertEqual(by_title['Lab Report']['my_submission_status'], 'draft')
        self.assertFalse(by_title['Lab Report']['is_overdue'])
        self.assertIsNone(by_title['Essay']['my_submission_status'])
        self.assertTrue(by_title['Essay']['is_overdue'])

    def test_my_submissions(self):
        self.client.force_authenticate(user=self.user1)
        self.client.put(self.url, {'body': 'Mine'}, format='json')

        response = self.client.get('/api/submissions/mine/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['assignment_title'], 'Lab Report')

    def test_dashboard(self):
        self.client.force_authenticate(user=self.user1)
        response = self.client.get('/api/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            [a['title'] for a in response.data['upcoming_assignments']], ['Lab Report']
        )

    def test_is_overdue_follows_injected_clock(self):
        later = self.assignment.due_at + timedelta(minutes=1)

        data = AssignmentSerializer(self.assignment, context={'clock': lambda: later}).data
        self.assertTrue(data['is_overdue'])
        self.assertFalse(AssignmentSerializer(self.assignment).data['is_overdue'])

        self.client.force_authenticate(user=self.user1)
        with mock.patch.object(AssignmentDetailView, 'clock', staticmethod(lambda: later)):
            response = self.client.get(f'/api/assignments/{self.assignment.pk}/')
        self.assertTrue(response.data['is_overdue'])

        with mock.patch.object(AssignmentListView, 'clock', staticmethod(lambda: later)):
            response = self.client.get('/api/assignments/')
        by_title = {a['title']: a for a in response.data['results']}
        self.assertTrue(by_title['Lab Report']['is_overdue'])
