"""
Слой доступа к данным: справочник пользователей и хранилище PR.

Сервисы получают эти объекты через конструктор и не обращаются к ORM
напрямую для операций с назначениями.
"""
import random
from dataclasses import dataclass, field

from django.db import transaction

from .models import PullRequest, PullRequestReviewer, Team, User

MAX_REVIEWERS = 2


class RandomPicker:
    """
    Равномерный случайный выбор кандидатов.

    По умолчанию использует модуль ``random``; в тестах можно передать
    ``random.Random(seed)`` или любой объект с ``sample`` и ``choice``.
    """

    def __init__(self, rng=None):
        self._rng = rng if rng is not None else random

    def sample(self, candidates: list, limit: int) -> list:
        if not candidates or limit <= 0:
            return []
        return self._rng.sample(candidates, min(limit, len(candidates)))

    def choice(self, candidates: list):
        return self._rng.choice(candidates)


@dataclass
class AffectedPullRequest:
    pr_id: str
    author_id: str
    reviewer_ids: set = field(default_factory=set)


class UserDirectory:
    """
    Справочник пользователей и команд
    """

    def __init__(self, picker: RandomPicker = None):
        self.picker = picker or RandomPicker()

    def get_by_id(self, user_id: str) -> User:
        return User.objects.select_related('team').get(id=user_id)

    def get_team(self, team_name: str) -> Team:
        return Team.objects.get(name=team_name)

    def active_members(self, team_name: str, exclude_ids=()):
        if not team_name:
            return User.objects.none()
        return (
            User.objects
            .active()
            .in_team(team_name)
            .exclude(id__in=list(exclude_ids))
            .order_by('id')
        )

    def get_review_candidates(self, team_name: str, exclude_user_id: str, limit: int = MAX_REVIEWERS) -> list:
        """
        Случайные активные участники команды (не больше ``limit``), кроме ``exclude_user_id``.

        Выбранные строки блокируются до конца транзакции и перечитываются:
        кого успела выключить параллельная массовая деактивация, тот
        заменяется следующим случайным кандидатом.
        """
        remaining = list(self.active_members(team_name, [exclude_user_id]))
        chosen = []
        while remaining and len(chosen) < limit:
            picked = self.picker.sample(remaining, limit - len(chosen))
            if not picked:
                break
            remaining = [user for user in remaining if user not in picked]
            chosen.extend(self._lock_active(team_name, picked))
        return chosen

    def get_replacement_candidate(self, team_name: str, exclude_user_ids) -> User:
        """
        Один случайный активный участник команды вне списка исключений.

        Вызывается под блокировкой PR, поэтому строки, занятые другой
        транзакцией, пропускаются без ожидания.

        Raises:
            User.DoesNotExist: если подходящих кандидатов нет
        """
        remaining = list(self.active_members(team_name, exclude_user_ids))
        while remaining:
            picked = self.picker.choice(remaining)
            locked = self._lock_active(team_name, [picked], skip_locked=True)
            if locked:
                return locked[0]
            remaining.remove(picked)
        raise User.DoesNotExist(f"No active candidate in team '{team_name}'")

    def _lock_active(self, team_name: str, users: list, skip_locked: bool = False) -> list:
        # в порядке id, как и массовая деактивация
        return list(
            self.active_members(team_name)
            .select_for_update(no_key=True, skip_locked=skip_locked)
            .filter(id__in=[user.id for user in users])
        )

    def set_active(self, user: User, is_active: bool) -> User:
        if user.is_active != is_active:
            user.is_active = is_active
            user.save(update_fields=['is_active'])
        return user

    # Примитивы массовой деактивации, вызываются внутри транзакции.

    def member_ids(self, team: Team, user_ids) -> list:
        return list(
            User.objects
            .select_for_update(no_key=True)
            .in_team(team)
            .filter(id__in=list(user_ids))
            .order_by('id')
            .values_list('id', flat=True)
        )

    def deactivate(self, user_ids) -> int:
        return User.objects.active().filter(id__in=list(user_ids)).update(is_active=False)

    def active_member_ids(self, team: Team) -> list:
        return list(
            User.objects
            .active()
            .in_team(team)
            .order_by('id')
            .values_list('id', flat=True)
        )


class PullRequestStore:
    """
    Хранилище PR и связи PR <-> ревьювер
    """

    def create(self, pr: PullRequest, reviewers: list) -> PullRequest:
        """
        Raises:
            IntegrityError: если PR с таким id уже есть
        """
        with transaction.atomic():
            pr.save(force_insert=True)
            pr.reviewers.set(reviewers)
        return pr

    def exists(self, pr_id: str) -> bool:
        return PullRequest.objects.filter(id=pr_id).exists()

    def get_by_id(self, pr_id: str, for_update: bool = False) -> PullRequest:
        queryset = PullRequest.objects.with_reviewers()
        if for_update:
            queryset = queryset.select_for_update()
        return queryset.get(id=pr_id)

    def update(self, pr: PullRequest) -> PullRequest:
        pr.save(update_fields=['status', 'merged_at'])
        return pr

    def replace_reviewers(self, pr: PullRequest, reviewers: list) -> PullRequest:
        # clear + add в одной транзакции, промежуточное состояние не видно
        pr.reviewers.set(reviewers, clear=True)
        return pr

    def reviewed_by(self, user: User) -> list:
        return list(PullRequest.objects.filter(reviewers=user).order_by('created_at', 'id'))

    # Примитивы массовой деактивации, вызываются внутри транзакции.

    def lock_open_reviews(self, user_ids) -> dict:
        """
        Блокирует открытые PR, где ревьюит кто-то из ``user_ids``.

        Returns:
            dict: pr_id -> AffectedPullRequest с автором и текущими ревьюверами
        """
        reviewed = PullRequestReviewer.objects.filter(user_id__in=list(user_ids)).values('pull_request_id')
        # блокировки берутся строго в порядке id
        locked = (
            PullRequest.objects
            .select_for_update()
            .open()
            .filter(id__in=reviewed)
            .order_by('id')
            .values_list('id', 'author_id')
        )
        affected = {
            pr_id: AffectedPullRequest(pr_id=pr_id, author_id=author_id)
            for pr_id, author_id in locked
        }
        links = (
            PullRequestReviewer.objects
            .filter(pull_request_id__in=list(affected))
            .values_list('pull_request_id', 'user_id')
        )
        for pr_id, user_id in links:
            affected[pr_id].reviewer_ids.add(user_id)
        return affected

    def remove_reviewer_links(self, pr_ids, user_ids) -> int:
        deleted, _ = (
            PullRequestReviewer.objects
            .filter(pull_request_id__in=list(pr_ids), user_id__in=list(user_ids))
            .delete()
        )
        return deleted

    def add_reviewer_links(self, pairs) -> None:
        links = [PullRequestReviewer(pull_request_id=pr_id, user_id=user_id) for pr_id, user_id in pairs]
        if links:
            PullRequestReviewer.objects.bulk_create(links, ignore_conflicts=True)
