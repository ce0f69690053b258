from django.urls import path
from .views import (
    RegisterView,
    LoginView,
    AccountView,
    ProfileView,
    CategoryListView,
    NoteListView,
    NoteDetailView,
    AnnouncementListView,
    AnnouncementDetailView,
    CommentListView,
    CommentDetailView,
    FeedbackListView,
    FeedbackDetailView,
    AssignmentListView,
    AssignmentDetailView,
    AssignmentSubmissionView,
    AssignmentSubmitView,
    SubmissionListView,
    AttachmentDownloadView,
    DashboardView,
)

urlpatterns = [
    # Accounts
    path('auth/register/', RegisterView.as_view(), name='register'),
    path('auth/login/', LoginView.as_view(), name='login'),
    path('auth/account/', AccountView.as_view(), name='account'),
    path('profile/', ProfileView.as_view(), name='profile'),

    # Content
    path('categories/', CategoryListView.as_view(), name='category-list'),
    path('notes/', NoteListView.as_view(), name='note-list'),
    path('notes/<uuid:pk>/', NoteDetailView.as_view(), name='note-detail'),
    path('announcements/', AnnouncementListView.as_view(), name='announcement-list'),
    path('announcements/<uuid:pk>/', AnnouncementDetailView.as_view(), name='announcement-detail'),
    path('announcements/<uuid:announcement_pk>/comments/', CommentListView.as_view(), name='comment-list'),
    path('comments/<uuid:pk>/', CommentDetailView.as_view(), name='comment-detail'),
    path('feedback/', FeedbackListView.as_view(), name='feedback-list'),
    path('feedback/<uuid:pk>/', FeedbackDetailView.as_view(), name='feedback-detail'),

    # Assignments and submissions
    path('assignments/', AssignmentListView.as_view(), name='assignment-list'),
    path('assignments/<uuid:pk>/', AssignmentDetailView.as_view(), name='assignment-detail'),
    path('assignments/<uuid:assignment_pk>/submission/', AssignmentSubmissionView.as_view(), name='assignment-submission'),
    path('assignments/<uuid:assignment_pk>/submission/submit/', AssignmentSubmitView.as_view(), name='assignment-submit'),
    path('submissions/mine/', SubmissionListView.as_view(), name='submission-list'),

    path('attachments/<path:path>', AttachmentDownloadView.as_view(), name='attachment-download'),
    path('dashboard/', DashboardView.as_view(), name='dashboard'),
]
