import uuid

from django.contrib.auth import authenticate
from django.http import FileResponse
from django.utils import timezone
from rest_framework import filters, generics, serializers, status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.authtoken.models import Token

from .attachments import AttachmentBinder
from .exceptions import LifecycleError, NotFound
from .lifecycle import SubmissionLifecycleManager
from .permissions import EntityPolicyPermission
from .policies import Actor, EntityType
from .serializers import (
    UserRegistrationSerializer,
    ProfileSerializer,
    CategorySerializer,
    NoteSerializer,
    AnnouncementSerializer,
    CommentSerializer,
    AssignmentSerializer,
    SubmissionSerializer,
    SubmissionDraftSerializer,
    FeedbackSerializer,
    DashboardSerializer,
)
from .services import (
    AccountService,
    AnnouncementService,
    AssignmentService,
    CategoryService,
    CommentService,
    FeedbackService,
    NoteService,
    ProfileService,
    dashboard,
)

UPLOAD_PARSERS = [JSONParser, MultiPartParser, FormParser]


class ActorMixin:
    """Builds the identity context for the current request; never cached across requests."""

    @property
    def actor(self):
        return Actor.from_user(self.request.user)


def _split_attachment_input(validated_data):
    data = dict(validated_data)
    upload = data.pop('file', None)
    remove_attachment = data.pop('remove_attachment', False)
    return data, upload, remove_attachment


class RegisterView(ActorMixin, APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = UserRegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = AccountService().register(self.actor, **serializer.validated_data)
        # Generate token for auto-login
        token, _ = Token.objects.get_or_create(user=user)
        return Response({
            'user_id': user.id,
            'username': user.username,
            'email': user.email,
            'token': token.key
        }, status=status.HTTP_201_CREATED)


class LoginView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        username = request.data.get('username')
        password = request.data.get('password')

        if not username or not password:
            return Response(
                {'error': 'Username and password required'},
                status=status.HTTP_400_BAD_REQUEST
            )

        user = authenticate(username=username, password=password)

        if user:
            token, _ = Token.objects.get_or_create(user=user)
            return Response({
                'token': token.key,
                'user_id': user.id,
                'username': user.username
            })

        return Response(
            {'error': 'Invalid credentials'},
            status=status.HTTP_401_UNAUTHORIZED
        )


class AccountView(ActorMixin, APIView):

    def delete(self, request):
        AccountService().delete_account(self.actor)
        return Response(status=status.HTTP_204_NO_CONTENT)


class ProfileView(ActorMixin, APIView):

    def get(self, request):
        profile = ProfileService().get(self.actor)
        return Response(ProfileSerializer(profile).data)

    def patch(self, request):
        serializer = ProfileSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        profile = ProfileService().update(self.actor, **serializer.validated_data)
        return Response(ProfileSerializer(profile).data)


class CategoryListView(ActorMixin, generics.ListAPIView):
    serializer_class = CategorySerializer
    pagination_class = None

    def get_queryset(self):
        return CategoryService().list(self.actor, kind=self.request.query_params.get('kind'))


class OwnedContentListView(ActorMixin, generics.ListAPIView):
    """List what the actor may read; POST creates a row owned by the actor."""
    service_class = None
    parser_classes = UPLOAD_PARSERS

    def get_service(self):
        return self.service_class()

    def get_queryset(self):
        queryset = self.get_service().list_visible(self.actor)
        category = self.request.query_params.get('category')
        if category:
            try:
                category = uuid.UUID(category)
            except ValueError:
                raise serializers.ValidationError({'category': ['Must be a valid UUID.']})
            queryset = queryset.filter(category_id=category)
        return queryset

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data, upload, _ = _split_attachment_input(serializer.validated_data)
        row = self.get_service().create(self.actor, upload=upload, **data)
        return Response(self.get_serializer(row).data, status=status.HTTP_201_CREATED)


class OwnedContentDetailView(ActorMixin, generics.GenericAPIView):
    service_class = None
    parser_classes = UPLOAD_PARSERS

    def get_service(self):
        return self.service_class()

    def get(self, request, pk):
        row = self.get_service().get(self.actor, pk)
        return Response(self.get_serializer(row).data)

    def patch(self, request, pk):
        serializer = self.get_serializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data, upload, remove_attachment = _split_attachment_input(serializer.validated_data)
        self.get_service().update(
            self.actor, pk, upload=upload, remove_attachment=remove_attachment, **data
        )
        # Re-read so annotations (comment counts) are present
        return Response(self.get_serializer(self.get_service().get(self.actor, pk)).data)

    def delete(self, request, pk):
        self.get_service().delete(self.actor, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)


class NoteListView(OwnedContentListView):
    serializer_class = NoteSerializer
    service_class = NoteService
    filter_backends = [filters.SearchFilter]
    search_fields = ['title', 'body']


class NoteDetailView(OwnedContentDetailView):
    serializer_class = NoteSerializer
    service_class = NoteService


class AnnouncementListView(OwnedContentListView):
    serializer_class = AnnouncementSerializer
    service_class = AnnouncementService
    filter_backends = [filters.SearchFilter]
    search_fields = ['title', 'body']


class AnnouncementDetailView(OwnedContentDetailView):
    serializer_class = AnnouncementSerializer
    service_class = AnnouncementService


class CommentListView(OwnedContentListView):
    serializer_class = CommentSerializer
    service_class = CommentService
    parser_classes = [JSONParser, FormParser]

    def get_queryset(self):
        return self.get_service().list_for_announcement(self.actor, self.kwargs['announcement_pk'])

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        comment = self.get_service().create(
            self.actor,
            announcement_id=self.kwargs['announcement_pk'],
            **serializer.validated_data
        )
        return Response(self.get_serializer(comment).data, status=status.HTTP_201_CREATED)


class CommentDetailView(OwnedContentDetailView):
    serializer_class = CommentSerializer
    service_class = CommentService
    parser_classes = [JSONParser, FormParser]


class FeedbackListView(OwnedContentListView):
    serializer_class = FeedbackSerializer
    service_class = FeedbackService
    parser_classes = [JSONParser, FormParser]

    def get_queryset(self):
        return self.get_service().list_visible(self.actor)


class FeedbackDetailView(OwnedContentDetailView):
    serializer_class = FeedbackSerializer
    service_class = FeedbackService
    parser_classes = [JSONParser, FormParser]


class AssignmentListView(ActorMixin, generics.ListAPIView):
    serializer_class = AssignmentSerializer
    clock = staticmethod(timezone.now)

    def get_queryset(self):
        return AssignmentService().list(self.actor)

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['clock'] = self.clock
        return context


class AssignmentDetailView(ActorMixin, APIView):
    clock = staticmethod(timezone.now)

    def get(self, request, pk):
        assignment = AssignmentService().get(self.actor, pk)
        return Response(AssignmentSerializer(assignment, context={'clock': self.clock}).data)


class SubmissionListView(ActorMixin, generics.ListAPIView):
    """The actor's own submissions, newest first."""
    serializer_class = SubmissionSerializer

    def get_queryset(self):
        return SubmissionLifecycleManager().list_own(self.actor)


class AssignmentSubmissionView(ActorMixin, APIView):
    """
    The actor's submission for one assignment.

    Identity always comes from the request; there is no owner in the payload.
    """
    parser_classes = UPLOAD_PARSERS

    def get_manager(self):
        return SubmissionLifecycleManager()

    def get_own(self, manager, assignment_pk):
        submission = manager.get_for_assignment(self.actor, assignment_pk)
        if submission is None:
            raise NotFound('You have no submission for this assignment.')
        return submission

    def get(self, request, assignment_pk):
        submission = self.get_own(self.get_manager(), assignment_pk)
        return Response(SubmissionSerializer(submission).data)

    def put(self, request, assignment_pk):
        serializer = SubmissionDraftSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data, upload, remove_attachment = _split_attachment_input(serializer.validated_data)
        submission = self.get_manager().start_or_update_draft(
            self.actor,
            assignment_pk,
            data['body'],
            upload=upload,
            remove_attachment=remove_attachment,
        )
        return Response(SubmissionSerializer(submission).data)

    def delete(self, request, assignment_pk):
        manager = self.get_manager()
        submission = self.get_own(manager, assignment_pk)
        manager.delete_draft(self.actor, submission.pk)
        return Response(status=status.HTTP_204_NO_CONTENT)


class AssignmentSubmitView(ActorMixin, APIView):

    def post(self, request, assignment_pk):
        manager = SubmissionLifecycleManager()
        submission = manager.get_for_assignment(self.actor, assignment_pk)
        if submission is None:
            raise LifecycleError('There is no draft to submit for this assignment.')
        submission = manager.submit(self.actor, submission.pk)
        return Response(SubmissionSerializer(submission).data)


class AttachmentDownloadView(ActorMixin, APIView):
    permission_classes = [EntityPolicyPermission]
    entity_type = EntityType.ATTACHMENT

    def get(self, request, path):
        self.check_object_permissions(request, path)
        binder = AttachmentBinder()
        if not binder.storage.exists(path):
            raise NotFound('Attachment not found.')
        return FileResponse(binder.open(path), filename=path.rsplit('/', 1)[-1])


class DashboardView(ActorMixin, APIView):
    clock = staticmethod(timezone.now)

    def get(self, request):
        data = dashboard(self.actor, clock=self.clock)
        return Response(DashboardSerializer(data, context={'clock': self.clock}).data)
