from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..errors import ServiceError
from ..responses import serializer_error, server_error, service_error_response, validation_error
from ..services import TeamService
from ..serializers import (
    MassDeactivateRequestSerializer,
    MassDeactivateResultSerializer,
    TeamCreateSerializer,
    TeamSerializer,
)


@api_view(['POST'])
def team_add(request):
    """POST /team/add - Создать команду с участниками"""
    try:
        payload = TeamCreateSerializer(data=request.data)
        if not payload.is_valid():
            return serializer_error(payload.errors)

        team = TeamService().create_team_with_members(
            payload.validated_data['team_name'],
            payload.validated_data['members'],
        )
        serializer = TeamSerializer(team)

        return Response({
            'team': serializer.data
        }, status=status.HTTP_201_CREATED)

    except ServiceError as e:
        return service_error_response(e)
    except Exception:
        return server_error(request)


@api_view(['GET'])
def team_get(request):
    """GET /team/get - Получить команду с участниками"""
    try:
        team_name = request.query_params.get('team_name')

        if not team_name:
            return validation_error('team_name parameter is required')

        team = TeamService().get_team_with_members(team_name)
        serializer = TeamSerializer(team)

        return Response(serializer.data)

    except ServiceError as e:
        return service_error_response(e)
    except Exception:
        return server_error(request)


@api_view(['POST'])
def team_bulk_deactivate(request):
    """POST /team/bulkDeactivate - Массово деактивировать участников и переназначить их PR"""
    try:
        payload = MassDeactivateRequestSerializer(data=request.data)
        if not payload.is_valid():
            return serializer_error(payload.errors)

        team_name = payload.validated_data['team_name']
        result = TeamService().mass_deactivate(team_name, payload.validated_data['user_ids'])

        return Response({
            'team_name': team_name,
            **MassDeactivateResultSerializer(result).data
        })

    except ServiceError as e:
        return service_error_response(e)
    except Exception:
        return server_error(request)
