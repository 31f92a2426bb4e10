from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase
from unittest.mock import patch

from api.models import User, PullRequest


def _members(prefix, count, inactive=()):
    return [
        {"user_id": f"{prefix}{i}", "username": f"Developer {prefix}{i}", "is_active": f"{prefix}{i}" not in inactive}
        for i in range(1, count + 1)
    ]


class FullWorkflowE2ETest(APITestCase):
    """
    End-to-end
    """

    def _add_team(self, team_name, members):
        response = self.client.post(reverse('api:team-add'), {"team_name": team_name, "members": members})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        return response

    def _create_pr(self, pr_id, author_id):
        return self.client.post(reverse('api:pr-create'), {
            "pull_request_id": pr_id,
            "pull_request_name": f"PR {pr_id}",
            "author_id": author_id,
        })

    def test_complete_pr_workflow(self):
        """
        E2E тест: полный workflow создания команды, PR, переназначения и мержа
        """
        response = self._add_team("backend-team", _members("dev", 4))
        self.assertEqual(response.data['team']['team_name'], 'backend-team')
        self.assertEqual(len(response.data['team']['members']), 4)

        # Проверяем что команда создана через GET API
        response = self.client.get(reverse('api:team-get'), {"team_name": "backend-team"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['team_name'], 'backend-team')
        self.assertEqual(len(response.data['members']), 4)

        response = self._create_pr("feature-auth", "dev1")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        pr = response.data['pr']
        self.assertEqual(pr['pull_request_id'], 'feature-auth')
        self.assertEqual(pr['author_id'], 'dev1')
        self.assertEqual(pr['status'], 'OPEN')
        self.assertIsNotNone(pr['createdAt'])
        self.assertIsNone(pr['mergedAt'])

        # Должны быть назначены 2 ревьювера (исключая автора)
        assigned_reviewers = pr['assigned_reviewers']
        self.assertEqual(len(assigned_reviewers), 2)
        self.assertNotIn('dev1', assigned_reviewers)

        reviewer_id = assigned_reviewers[0]
        response = self.client.get(reverse('api:user-get-review'), {"user_id": reviewer_id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user_id'], reviewer_id)
        self.assertEqual(len(response.data['pull_requests']), 1)
        self.assertEqual(response.data['pull_requests'][0]['pull_request_id'], 'feature-auth')

        # Единственный свободный кандидат: тот, кто не автор и не ревьювер
        expected_new = ({"dev2", "dev3", "dev4"} - set(assigned_reviewers)).pop()
        reassign_data = {"pull_request_id": "feature-auth", "old_user_id": reviewer_id}
        response = self.client.post(reverse('api:pr-reassign'), reassign_data)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['replaced_by'], expected_new)
        self.assertIn(expected_new, response.data['pr']['assigned_reviewers'])
        self.assertNotIn(reviewer_id, response.data['pr']['assigned_reviewers'])
        self.assertEqual(len(response.data['pr']['assigned_reviewers']), 2)

        # Проверяем что у старого ревьювера больше нет этого PR
        response = self.client.get(reverse('api:user-get-review'), {"user_id": reviewer_id})
        self.assertEqual(len(response.data['pull_requests']), 0)

        response = self.client.get(reverse('api:user-get-review'), {"user_id": expected_new})
        self.assertEqual(len(response.data['pull_requests']), 1)

        merge_data = {"pull_request_id": "feature-auth"}
        response = self.client.post(reverse('api:pr-merge'), merge_data)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pr']['status'], 'MERGED')
        merged_at = response.data['pr']['mergedAt']
        self.assertIsNotNone(merged_at)

        # Переназначение после мержа запрещено
        reassign_data = {"pull_request_id": "feature-auth", "old_user_id": expected_new}
        response = self.client.post(reverse('api:pr-reassign'), reassign_data)
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'PR_MERGED')

        # Проверяем идемпотентность мержа
        response = self.client.post(reverse('api:pr-merge'), merge_data)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pr']['status'], 'MERGED')
        self.assertEqual(response.data['pr']['mergedAt'], merged_at)

    def test_user_activation_workflow(self):
        """
        E2E тест: workflow с деактивацией пользователя
        """
        self._add_team("qa-team", _members("qa", 3))

        response = self.client.post(reverse('api:user-set-active'), {"user_id": "qa2", "is_active": False})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['team_name'], 'qa-team')
        self.assertFalse(response.data['user']['is_active'])

        # Деактивированный пользователь не назначается
        response = self._create_pr("test-fix", "qa1")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['pr']['assigned_reviewers'], ["qa3"])

        response = self.client.post(reverse('api:user-set-active'), {"user_id": "qa2", "is_active": True})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['user']['is_active'])

        response = self._create_pr("new-feature", "qa3")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(sorted(response.data['pr']['assigned_reviewers']), ["qa1", "qa2"])

    def test_edge_cases_workflow(self):
        """
        E2E тест: граничные случаи
        """
        self._add_team("small-team", _members("s", 1))

        # Только автор в команде: ревьюверов нет
        response = self._create_pr("solo-pr", "s1")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['pr']['assigned_reviewers'], [])

        self._add_team("inactive-team", _members("i", 3, inactive=("i1", "i2")))

        response = self._create_pr("inactive-team-pr", "i3")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['pr']['assigned_reviewers'], [])


class ErrorResponsesE2ETest(APITestCase):
    """
    E2E тесты кодов ошибок
    """

    def setUp(self):
        self.client.post(reverse('api:team-add'), {
            "team_name": "mobile-team",
            "members": [
                {"user_id": "m1", "username": "Mobile Dev 1", "is_active": True},
                {"user_id": "m2", "username": "Mobile Dev 2", "is_active": True},
            ]
        })
        self.client.post(reverse('api:pr-create'), {
            "pull_request_id": "valid-pr",
            "pull_request_name": "Valid PR",
            "author_id": "m1",
        })

    def assertError(self, response, http_status, code):
        self.assertEqual(response.status_code, http_status)
        self.assertEqual(response.data['error']['code'], code)
        self.assertTrue(response.data['error']['message'])

    def test_author_not_found(self):
        response = self.client.post(reverse('api:pr-create'), {
            "pull_request_id": "invalid-pr",
            "pull_request_name": "Invalid PR",
            "author_id": "nonexistent-user",
        })
        self.assertError(response, status.HTTP_404_NOT_FOUND, 'NOT_FOUND')

    def test_duplicate_pr(self):
        response = self.client.post(reverse('api:pr-create'), {
            "pull_request_id": "valid-pr",
            "pull_request_name": "Another",
            "author_id": "m2",
        })
        self.assertError(response, status.HTTP_409_CONFLICT, 'PR_EXISTS')
        self.assertEqual(PullRequest.objects.get(id="valid-pr").author_id, "m1")

    def test_reassign_not_assigned(self):
        response = self.client.post(reverse('api:pr-reassign'), {
            "pull_request_id": "valid-pr",
            "old_user_id": "m1",
        })
        self.assertError(response, status.HTTP_409_CONFLICT, 'NOT_ASSIGNED')

    def test_reassign_no_candidate(self):
        response = self.client.post(reverse('api:pr-reassign'), {
            "pull_request_id": "valid-pr",
            "old_user_id": "m2",
        })
        self.assertError(response, status.HTTP_409_CONFLICT, 'NO_CANDIDATE')

    def test_pr_not_found(self):
        response = self.client.post(reverse('api:pr-merge'), {"pull_request_id": "missing"})
        self.assertError(response, status.HTTP_404_NOT_FOUND, 'NOT_FOUND')

        response = self.client.post(reverse('api:pr-reassign'), {"pull_request_id": "missing", "old_user_id": "m2"})
        self.assertError(response, status.HTTP_404_NOT_FOUND, 'NOT_FOUND')

    def test_team_errors(self):
        response = self.client.post(reverse('api:team-add'), {"team_name": "mobile-team", "members": []})
        self.assertError(response, status.HTTP_400_BAD_REQUEST, 'TEAM_EXISTS')

        response = self.client.get(reverse('api:team-get'), {"team_name": "missing"})
        self.assertError(response, status.HTTP_404_NOT_FOUND, 'NOT_FOUND')

    def test_user_errors(self):
        response = self.client.post(reverse('api:user-set-active'), {"user_id": "ghost", "is_active": False})
        self.assertError(response, status.HTTP_404_NOT_FOUND, 'NOT_FOUND')

        response = self.client.get(reverse('api:user-get-review'), {"user_id": "ghost"})
        self.assertError(response, status.HTTP_404_NOT_FOUND, 'NOT_FOUND')

    def test_validation_errors(self):
        response = self.client.post(reverse('api:pr-create'), {"pull_request_name": "No id"})
        self.assertError(response, status.HTTP_400_BAD_REQUEST, 'VALIDATION_ERROR')

        response = self.client.post(reverse('api:user-set-active'), {"user_id": "m1", "is_active": "no"})
        self.assertError(response, status.HTTP_400_BAD_REQUEST, 'VALIDATION_ERROR')

        response = self.client.get(reverse('api:team-get'))
        self.assertError(response, status.HTTP_400_BAD_REQUEST, 'VALIDATION_ERROR')

        response = self.client.post(reverse('api:team-add'), {
            "team_name": "broken",
            "members": [{"user_id": "x1"}],
        })
        self.assertError(response, status.HTTP_400_BAD_REQUEST, 'VALIDATION_ERROR')
        self.assertIn('members[0].username', response.data['error']['message'])

        response = self.client.post(reverse('api:team-bulk-deactivate'), {"user_ids": ["m1"]})
        self.assertError(response, status.HTTP_400_BAD_REQUEST, 'VALIDATION_ERROR')

    def test_unexpected_error_is_hidden(self):
        with patch('api.services.PullRequestService.merge_pull_request', side_effect=RuntimeError("db down")):
            response = self.client.post(reverse('api:pr-merge'), {"pull_request_id": "valid-pr"})

        self.assertError(response, status.HTTP_500_INTERNAL_SERVER_ERROR, 'SERVER_ERROR')
        self.assertNotIn('db down', response.data['error']['message'])


class BulkDeactivateE2ETest(APITestCase):
    """
    E2E тесты массовой деактивации
    """

    def setUp(self):
        self.client.post(reverse('api:team-add'), {"team_name": "backend", "members": _members("u", 3)})
        response = self.client.post(reverse('api:pr-create'), {
            "pull_request_id": "pr-1",
            "pull_request_name": "Feature",
            "author_id": "u1",
        })
        self.assertEqual(sorted(response.data['pr']['assigned_reviewers']), ["u2", "u3"])

    def test_bulk_deactivate_reassigns_open_prs(self):
        User.objects.create(id="u4", username="Late joiner", team=User.objects.get(id="u1").team)

        response = self.client.post(reverse('api:team-bulk-deactivate'), {
            "team_name": "backend",
            "user_ids": ["u2"],
        })

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {"team_name": "backend", "deactivated_count": 1, "reassigned_prs": 1})

        response = self.client.get(reverse('api:user-get-review'), {"user_id": "u4"})
        self.assertEqual([pr['pull_request_id'] for pr in response.data['pull_requests']], ["pr-1"])

        response = self.client.get(reverse('api:user-get-review'), {"user_id": "u2"})
        self.assertEqual(response.data['pull_requests'], [])

    def test_bulk_deactivate_without_candidates(self):
        response = self.client.post(reverse('api:team-bulk-deactivate'), {
            "team_name": "backend",
            "user_ids": ["u2", "u3"],
        })

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['deactivated_count'], 2)
        self.assertEqual(response.data['reassigned_prs'], 0)
        self.assertFalse(PullRequest.objects.get(id="pr-1").reviewers.exists())

    def test_bulk_deactivate_unknown_team(self):
        response = self.client.post(reverse('api:team-bulk-deactivate'), {
            "team_name": "missing",
            "user_ids": ["u2"],
        })

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error']['code'], 'NOT_FOUND')


class StatsE2ETest(APITestCase):
    """
    E2E тесты статистики и health
    """

    def test_health(self):
        response = self.client.get(reverse('api:health-check'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'status': 'healthy'})

    def test_reviewer_load_and_statistic(self):
        self.client.post(reverse('api:team-add'), {"team_name": "backend", "members": _members("u", 2)})
        self.client.post(reverse('api:pr-create'), {"pull_request_id": "pr-1", "author_id": "u1"})
        self.client.post(reverse('api:pr-create'), {"pull_request_id": "pr-2", "author_id": "u1"})

        response = self.client.get(reverse('api:reviewer-load'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'stats': [{'user_id': 'u2', 'review_count': 2}]})

        response = self.client.get(reverse('api:statistic-view'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['pr_reviewer_stats']), 2)
        self.assertEqual(response.data['user_review_stats'][0]['id'], 'u2')
        self.assertEqual(response.data['user_review_stats'][0]['prs_reviewed'], 2)
