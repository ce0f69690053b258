from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework import serializers

from .models import Announcement, Assignment, Category, Comment, Feedback, Note, Profile, Submission

User = get_user_model()


class UserRegistrationSerializer(serializers.ModelSerializer):
    """Validates sign-up input; the account itself is created by AccountService."""
    password = serializers.CharField(write_only=True, min_length=8)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'password']
        read_only_fields = ['id']


class ProfileSerializer(serializers.ModelSerializer):
    id = serializers.UUIDField(source='user_id', read_only=True)

    class Meta:
        model = Profile
        fields = ['id', 'email', 'first_name', 'last_name', 'avatar_url', 'created_at', 'updated_at']
        read_only_fields = ['email', 'created_at', 'updated_at']


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ['id', 'name', 'kind']


class AttachmentSerializer(serializers.Serializer):
    """Read-only view of an AttachmentDescriptor."""
    path = serializers.CharField()
    name = serializers.CharField()
    media_type = serializers.CharField()
    size = serializers.IntegerField()


class AttachmentInputMixin(serializers.Serializer):
    """Write-only upload controls shared by every form that can carry a file."""
    file = serializers.FileField(write_only=True, required=False, allow_empty_file=True)
    remove_attachment = serializers.BooleanField(write_only=True, required=False, default=False)
    attachment = AttachmentSerializer(read_only=True, allow_null=True)

    def validate(self, attrs):
        if attrs.get('file') is not None and attrs.get('remove_attachment'):
            raise serializers.ValidationError(
                "Send either a new file or remove_attachment, not both."
            )
        return attrs


class NoteSerializer(AttachmentInputMixin, serializers.ModelSerializer):
    # Only note categories may be referenced from a note
    category = serializers.PrimaryKeyRelatedField(
        queryset=Category.objects.filter(kind=Category.Kind.NOTE),
        allow_null=True,
        required=False
    )
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)

    class Meta:
        model = Note
        fields = ['id', 'owner', 'title', 'body', 'category', 'category_name',
                  'attachment', 'file', 'remove_attachment', 'created_at', 'updated_at']
        read_only_fields = ['owner', 'created_at', 'updated_at']


class AnnouncementSerializer(AttachmentInputMixin, serializers.ModelSerializer):
    category = serializers.PrimaryKeyRelatedField(
        queryset=Category.objects.filter(kind=Category.Kind.ANNOUNCEMENT),
        allow_null=True,
        required=False
    )
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)
    author_name = serializers.SerializerMethodField()
    comment_count = serializers.SerializerMethodField()

    class Meta:
        model = Announcement
        fields = ['id', 'owner', 'author_name', 'title', 'body', 'category', 'category_name',
                  'attachment', 'file', 'remove_attachment', 'comment_count',
                  'created_at', 'updated_at']
        read_only_fields = ['owner', 'created_at', 'updated_at']

    def get_author_name(self, obj):
        return _display_name(obj.owner)

    def get_comment_count(self, obj):
        # Annotated on list/detail querysets; a freshly created row has none.
        return getattr(obj, 'comment_count', 0)


class CommentSerializer(serializers.ModelSerializer):
    author_name = serializers.SerializerMethodField()

    class Meta:
        model = Comment
        fields = ['id', 'announcement', 'owner', 'author_name', 'body', 'created_at', 'updated_at']
        read_only_fields = ['announcement', 'owner', 'created_at', 'updated_at']

    def get_author_name(self, obj):
        return _display_name(obj.owner)


class AssignmentSerializer(serializers.ModelSerializer):
    is_overdue = serializers.SerializerMethodField()
    my_submission_status = serializers.CharField(read_only=True, default=None)

    class Meta:
        model = Assignment
        fields = ['id', 'title', 'description', 'due_at', 'is_overdue',
                  'my_submission_status', 'created_at']

    def get_is_overdue(self, obj):
        clock = self.context.get('clock', timezone.now)
        return obj.is_overdue(clock())


class SubmissionSerializer(serializers.ModelSerializer):
    assignment_title = serializers.CharField(source='assignment.title', read_only=True)
    attachment = AttachmentSerializer(read_only=True, allow_null=True)

    class Meta:
        model = Submission
        fields = ['id', 'assignment', 'assignment_title', 'owner', 'status', 'body',
                  'attachment', 'submitted_at', 'created_at', 'updated_at']
        read_only_fields = fields


class SubmissionDraftSerializer(AttachmentInputMixin):
    """Input for starting or updating a draft."""
    body = serializers.CharField(allow_blank=True, trim_whitespace=False)


class FeedbackSerializer(serializers.ModelSerializer):
    class Meta:
        model = Feedback
        fields = ['id', 'owner', 'subject', 'message', 'type', 'status', 'created_at', 'updated_at']
        read_only_fields = ['owner', 'status', 'created_at', 'updated_at']


class DashboardSerializer(serializers.Serializer):
    recent_notes = NoteSerializer(many=True, read_only=True)
    upcoming_assignments = AssignmentSerializer(many=True, read_only=True)
    recent_announcements = AnnouncementSerializer(many=True, read_only=True)


def _display_name(user):
    profile = getattr(user, 'profile', None)
    if profile is not None:
        full_name = f"{profile.first_name} {profile.last_name}".strip()
        if full_name:
            return full_name
        return profile.email
    return user.get_username()
