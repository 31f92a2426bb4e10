import logging
from dataclasses import dataclass

from django.db import IntegrityError, models, transaction
from django.db.models import Count
from django.utils import timezone

from .errors import (
    AuthorNotFound,
    InvalidRequest,
    NoCandidate,
    NotAssigned,
    PRAlreadyExists,
    PRMerged,
    PRNotFound,
    TeamAlreadyExists,
    TeamNotFound,
    UserNotFound,
)
from .models import PullRequest, PullRequestReviewer, Team, User
from .repositories import AffectedPullRequest, PullRequestStore, UserDirectory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MassDeactivateResult:
    deactivated_count: int = 0
    reassigned_count: int = 0


class TeamService:
    """
    Сервис для управления командами и массовой деактивации участников
    """

    def __init__(self, directory: UserDirectory = None, store: PullRequestStore = None):
        self.directory = directory or UserDirectory()
        self.store = store or PullRequestStore()

    @transaction.atomic
    def create_team_with_members(self, team_name: str, members_data: list) -> Team:
        """
        Создает команду и создает/обновляет ее участников.

        Raises:
            TeamAlreadyExists: если команда с таким именем уже есть
        """
        if Team.objects.filter(name=team_name).exists():
            logger.warning("team already exists: team_name=%s", team_name)
            raise TeamAlreadyExists()

        team = Team.objects.create(name=team_name)
        for member_data in members_data:
            self._create_or_update_user(team, member_data)

        logger.info("team created: team_name=%s members=%d", team_name, len(members_data))
        return team

    @staticmethod
    def _create_or_update_user(team: Team, member_data: dict) -> User:
        user, _ = User.objects.update_or_create(
            id=member_data['user_id'],
            defaults={
                'username': member_data['username'],
                'is_active': member_data['is_active'],
                'team': team,
            },
        )
        return user

    def get_team_with_members(self, team_name: str) -> Team:
        try:
            return Team.objects.prefetch_related('members').get(name=team_name)
        except Team.DoesNotExist:
            raise TeamNotFound(f"Team '{team_name}' not found")

    def mass_deactivate(self, team_name: str, user_ids: list) -> MassDeactivateResult:
        """
        Массовая деактивация участников команды с переназначением открытых PR.

        Все шаги идут в одной транзакции: ошибка на любом из них
        откатывает и деактивацию, и изменения ревьюверов.

        Raises:
            TeamNotFound: если команды нет
        """
        with transaction.atomic():
            try:
                team = self.directory.get_team(team_name)
            except Team.DoesNotExist:
                logger.warning("mass deactivate: team not found: team_name=%s", team_name)
                raise TeamNotFound(f"Team '{team_name}' not found")

            member_ids = self.directory.member_ids(team, user_ids)
            deactivated_count = self.directory.deactivate(member_ids)
            if deactivated_count == 0:
                logger.info("mass deactivate: nothing to deactivate: team_name=%s", team_name)
                return MassDeactivateResult()

            # пул считается после деактивации, выключенные в него не попадают
            pool = self.directory.active_member_ids(team)
            affected = self.store.lock_open_reviews(member_ids)

            new_links = []
            for pr in affected.values():
                for new_reviewer_id in self._pick_replacements(pr, set(member_ids), pool):
                    new_links.append((pr.pr_id, new_reviewer_id))

            self.store.remove_reviewer_links(affected.keys(), member_ids)
            self.store.add_reviewer_links(new_links)

            result = MassDeactivateResult(
                deactivated_count=deactivated_count,
                reassigned_count=len({pr_id for pr_id, _ in new_links}),
            )

        skipped = len(affected) - result.reassigned_count
        if skipped:
            logger.warning(
                "mass deactivate: no candidates for %d PR(s), left under-reviewed: team_name=%s",
                skipped, team_name,
            )
        logger.info(
            "mass deactivate done: team_name=%s deactivated=%d reassigned=%d",
            team_name, result.deactivated_count, result.reassigned_count,
        )
        return result

    @staticmethod
    def _pick_replacements(pr: AffectedPullRequest, deactivated_ids: set, pool: list) -> list:
        """
        По одной замене на каждого выбывшего ревьювера, первый подходящий из пула.
        """
        orphaned = sorted(pr.reviewer_ids & deactivated_ids)
        taken = (pr.reviewer_ids - deactivated_ids) | {pr.author_id}
        picked = []
        for _ in orphaned:
            candidate = next((user_id for user_id in pool if user_id not in taken), None)
            if candidate is None:
                break
            taken.add(candidate)
            picked.append(candidate)
        return picked


class UserService:
    """
    Сервис для управления пользователями
    """

    def __init__(self, directory: UserDirectory = None, store: PullRequestStore = None):
        self.directory = directory or UserDirectory()
        self.store = store or PullRequestStore()

    def _get_user(self, user_id: str) -> User:
        try:
            return self.directory.get_by_id(user_id)
        except User.DoesNotExist:
            raise UserNotFound(f"User '{user_id}' not found")

    def set_user_active_status(self, user_id: str, is_active: bool) -> User:
        user = self.directory.set_active(self._get_user(user_id), is_active)
        logger.info("user active status updated: user_id=%s is_active=%s", user_id, is_active)
        return user

    def get_user_review_assignments(self, user_id: str) -> list:
        return self.store.reviewed_by(self._get_user(user_id))


class PullRequestService:
    """
    Сервис для управления Pull Request'ами: создание с автоназначением,
    мерж и переназначение ревьювера
    """

    def __init__(self, directory: UserDirectory = None, store: PullRequestStore = None):
        self.directory = directory or UserDirectory()
        self.store = store or PullRequestStore()

    @transaction.atomic
    def create_pull_request(self, pr_id: str, pr_name: str, author_id: str) -> PullRequest:
        """
        Создает PR и назначает до двух случайных активных ревьюверов из команды автора.

        Выбранные ревьюверы остаются заблокированными до вставки PR, так что
        параллельная массовая деактивация либо ждет, либо уже видна здесь.

        Raises:
            InvalidRequest: если не передан id PR или автора
            AuthorNotFound: если автора нет
            PRAlreadyExists: если PR с таким id уже есть
        """
        if not pr_id or not author_id:
            raise InvalidRequest('pull_request_id and author_id are required')

        try:
            author = self.directory.get_by_id(author_id)
        except User.DoesNotExist:
            logger.warning("failed to create pr: author not found: author_id=%s", author_id)
            raise AuthorNotFound(f"Author '{author_id}' not found")

        team_name = author.team_name
        reviewers = self.directory.get_review_candidates(team_name, author.id)

        pr = PullRequest(
            id=pr_id,
            name=pr_name or '',
            author=author,
            status=PullRequest.Status.OPEN,
            created_at=timezone.now(),
        )
        try:
            self.store.create(pr, reviewers)
        except IntegrityError:
            if self.store.exists(pr_id):
                logger.warning("pr already exists: pr_id=%s", pr_id)
                raise PRAlreadyExists()
            logger.exception("failed to create pr: pr_id=%s", pr_id)
            raise

        logger.info("pr created: pr_id=%s reviewers_count=%d", pr_id, len(reviewers))
        return pr

    @transaction.atomic
    def merge_pull_request(self, pr_id: str) -> PullRequest:
        """
        Переводит PR в MERGED. Повторный вызов возвращает PR без изменений.
        """
        pr = self._get_pull_request(pr_id)
        if pr.is_merged:
            return pr

        pr.mark_merged(timezone.now())
        self.store.update(pr)

        logger.info("pr merged: pr_id=%s", pr_id)
        return pr

    @transaction.atomic
    def reassign_reviewer(self, pr_id: str, old_user_id: str) -> tuple:
        """
        Заменяет ревьювера ``old_user_id`` случайным активным участником команды автора.

        Исключения пересчитываются по текущему состоянию БД при каждом вызове.

        Returns:
            tuple: (обновленный PR, новый ревьювер)

        Raises:
            PRNotFound, PRMerged, NotAssigned, NoCandidate
        """
        pr = self._get_pull_request(pr_id)
        if pr.is_merged:
            logger.warning("reassign rejected: pr merged: pr_id=%s", pr_id)
            raise PRMerged()

        current_reviewers = list(pr.reviewers.all())
        current_ids = {reviewer.id for reviewer in current_reviewers}
        exclude_ids = current_ids | {pr.author_id}
        if old_user_id not in current_ids:
            logger.warning("reassign rejected: not assigned: pr_id=%s old_user_id=%s", pr_id, old_user_id)
            raise NotAssigned()

        author = self.directory.get_by_id(pr.author_id)
        team_name = author.team_name
        try:
            new_reviewer = self.directory.get_replacement_candidate(team_name, exclude_ids)
        except User.DoesNotExist:
            logger.warning("no replacement candidate available: pr_id=%s team=%s", pr_id, team_name)
            raise NoCandidate()

        reviewers = [
            new_reviewer if reviewer.id == old_user_id else reviewer
            for reviewer in current_reviewers
        ]
        self.store.replace_reviewers(pr, reviewers)

        logger.info(
            "reviewer reassigned: pr_id=%s old_user_id=%s new_user_id=%s",
            pr_id, old_user_id, new_reviewer.id,
        )
        return pr, new_reviewer

    def _get_pull_request(self, pr_id: str) -> PullRequest:
        try:
            return self.store.get_by_id(pr_id, for_update=True)
        except PullRequest.DoesNotExist:
            raise PRNotFound(f"PR '{pr_id}' not found")


class StatsService:
    """
    Сервис для сбора статистики
    """

    @classmethod
    def get_review_stats(cls):
        """
        Returns:
            dict: Статистика по пользователям и PR
        """
        user_review_stats = (
            User.objects
            .filter(assigned_prs__isnull=False)
            .annotate(
                prs_reviewed=Count('assigned_prs'),
                open_prs_reviewed=Count('assigned_prs', filter=models.Q(assigned_prs__status='OPEN')),
                merged_prs_reviewed=Count('assigned_prs', filter=models.Q(assigned_prs__status='MERGED'))
            )
            .values('id', 'username', 'prs_reviewed', 'open_prs_reviewed', 'merged_prs_reviewed')
            .order_by('-prs_reviewed', 'id')
        )

        pr_reviewer_stats = (
            PullRequest.objects
            .annotate(
                reviewers_count=Count('reviewers'),
                team_name=models.F('author__team__name')
            )
            .values(
                'id', 'name', 'status', 'team_name',
                'reviewers_count', 'created_at', 'merged_at'
            )
            .order_by('-created_at', 'id')
        )

        return {
            'user_review_stats': list(user_review_stats),
            'pr_reviewer_stats': list(pr_reviewer_stats)
        }

    @classmethod
    def get_reviewer_load(cls) -> list:
        """
        Returns:
            list: [{'user_id': ..., 'review_count': ...}], самые загруженные первыми
        """
        return list(
            PullRequestReviewer.objects
            .values('user_id')
            .annotate(review_count=Count('id'))
            .order_by('-review_count', 'user_id')
        )
