from rest_framework import serializers
from .models import Team, User, PullRequest

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class TeamMemberSerializer(serializers.ModelSerializer):
    user_id = serializers.CharField(source='id')

    class Meta:
        model = User
        fields = ['user_id', 'username', 'is_active']


class TeamSerializer(serializers.ModelSerializer):
    team_name = serializers.CharField(source='name')
    members = TeamMemberSerializer(many=True, read_only=True)

    class Meta:
        model = Team
        fields = ['team_name', 'members']


class TeamMemberInputSerializer(serializers.Serializer):
    user_id = serializers.CharField()
    username = serializers.CharField()
    is_active = serializers.BooleanField()


class TeamCreateSerializer(serializers.Serializer):
    team_name = serializers.CharField()
    members = TeamMemberInputSerializer(many=True, required=False, default=list)


class UserSerializer(serializers.ModelSerializer):
    user_id = serializers.CharField(source='id')
    team_name = serializers.CharField(allow_null=True, read_only=True)

    class Meta:
        model = User
        fields = ['user_id', 'username', 'team_name', 'is_active']


class PullRequestShortSerializer(serializers.ModelSerializer):
    pull_request_id = serializers.CharField(source='id')
    pull_request_name = serializers.CharField(source='name')
    author_id = serializers.CharField()

    class Meta:
        model = PullRequest
        fields = ['pull_request_id', 'pull_request_name', 'author_id', 'status']


class PullRequestSerializer(PullRequestShortSerializer):
    """Полное представление PR: ревьюверы списком id, время в UTC."""

    assigned_reviewers = serializers.PrimaryKeyRelatedField(source='reviewers', many=True, read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', format=TIMESTAMP_FORMAT)
    mergedAt = serializers.DateTimeField(source='merged_at', format=TIMESTAMP_FORMAT, allow_null=True)

    class Meta(PullRequestShortSerializer.Meta):
        fields = PullRequestShortSerializer.Meta.fields + ['assigned_reviewers', 'createdAt', 'mergedAt']


class MassDeactivateRequestSerializer(serializers.Serializer):
    team_name = serializers.CharField()
    user_ids = serializers.ListField(child=serializers.CharField(), allow_empty=True)


class MassDeactivateResultSerializer(serializers.Serializer):
    deactivated_count = serializers.IntegerField()
    reassigned_prs = serializers.IntegerField(source='reassigned_count')


class UserReviewStatsSerializer(serializers.Serializer):
    id = serializers.CharField()
    username = serializers.CharField()
    prs_reviewed = serializers.IntegerField()
    open_prs_reviewed = serializers.IntegerField()
    merged_prs_reviewed = serializers.IntegerField()


class PRReviewerStatsSerializer(serializers.Serializer):
    id = serializers.CharField()
    name = serializers.CharField()
    status = serializers.CharField()
    team_name = serializers.CharField(allow_null=True)
    reviewers_count = serializers.IntegerField()
    created_at = serializers.DateTimeField()
    merged_at = serializers.DateTimeField(allow_null=True)


class StatsSerializer(serializers.Serializer):
    user_review_stats = UserReviewStatsSerializer(many=True)
    pr_reviewer_stats = PRReviewerStatsSerializer(many=True)


class ReviewerLoadSerializer(serializers.Serializer):
    user_id = serializers.CharField()
    review_count = serializers.IntegerField()
