from django.db import models
from django.utils import timezone


class Team(models.Model):
    name = models.CharField(max_length=100, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'teams'


class UserQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def in_team(self, team):
        """``team``: объект Team или имя команды."""
        if isinstance(team, Team):
            return self.filter(team=team)
        return self.filter(team__name=team)


class User(models.Model):
    """
    Участник команды. Идентификатор приходит извне и не меняется.
    Неактивный пользователь не может стать ревьювером.
    """

    id = models.CharField(max_length=50, primary_key=True)
    username = models.CharField(max_length=100)
    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name='members', null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = UserQuerySet.as_manager()

    @property
    def team_name(self):
        return self.team.name if self.team_id else None

    def __str__(self):
        return f"{self.username} ({self.id})"

    class Meta:
        db_table = 'users'
        indexes = [
            models.Index(fields=['team', 'is_active'], name='users_team_active_idx'),
        ]


class PullRequestQuerySet(models.QuerySet):
    def open(self):
        return self.filter(status=PullRequest.Status.OPEN)

    def with_reviewers(self):
        return self.prefetch_related('reviewers')


class PullRequest(models.Model):
    """
    PR с набором ревьюверов. OPEN -> MERGED, обратного перехода нет;
    у мерженого PR ревьюверы больше не меняются.
    """

    class Status(models.TextChoices):
        OPEN = 'OPEN', 'Open'
        MERGED = 'MERGED', 'Merged'

    id = models.CharField(max_length=100, primary_key=True)
    name = models.CharField(max_length=200, blank=True)
    author = models.ForeignKey(User, on_delete=models.CASCADE, related_name='authored_prs')
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.OPEN)
    reviewers = models.ManyToManyField(
        User,
        through='PullRequestReviewer',
        related_name='assigned_prs',
        blank=True,
    )
    created_at = models.DateTimeField(default=timezone.now)
    merged_at = models.DateTimeField(null=True, blank=True)

    objects = PullRequestQuerySet.as_manager()

    @property
    def is_merged(self) -> bool:
        return self.status == self.Status.MERGED

    def mark_merged(self, when=None):
        self.status = self.Status.MERGED
        self.merged_at = when or timezone.now()

    def save(self, *args, **kwargs):
        # merged_at заполнен тогда и только тогда, когда PR мержен
        if self.is_merged and not self.merged_at:
            self.merged_at = timezone.now()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.name} ({self.id})"

    class Meta:
        db_table = 'pull_requests'


class PullRequestReviewer(models.Model):
    """Связь PR <-> ревьювер, одна строка на пару."""

    pull_request = models.ForeignKey(PullRequest, on_delete=models.CASCADE, related_name='review_links')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='review_links')

    def __str__(self):
        return f"{self.pull_request_id} -> {self.user_id}"

    class Meta:
        db_table = 'pr_reviewers'
        constraints = [
            models.UniqueConstraint(fields=['pull_request', 'user'], name='unique_pr_reviewer'),
        ]
