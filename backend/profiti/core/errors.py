# profiti/core/errors.py
"""
Domain errors and their translation to HTTP responses.

Services raise ProfitiError subclasses; routers wrap their work in `service_errors()`
which turns those (and raw Google API failures) into HTTPException with French messages.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager

from fastapi import HTTPException, status
from google.api_core import exceptions as gexc

logger = logging.getLogger("profiti.errors")

UNAVAILABLE_MSG = "Service momentanément indisponible. Veuillez réessayer."
NOT_FOUND_MSG = "Document introuvable."
FORBIDDEN_MSG = "Accès refusé."
CONFLICT_MSG = "La ressource a été modifiée entre-temps. Veuillez réessayer."


class ProfitiError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidRequest(ProfitiError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(ProfitiError):
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(ProfitiError):
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(ProfitiError):
    status_code = status.HTTP_409_CONFLICT


class UpstreamError(ProfitiError):
    status_code = status.HTTP_502_BAD_GATEWAY


def to_http(exc: ProfitiError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail)


@contextmanager
def service_errors(action: str):
    """
    Collapse backend failures into user-facing errors.
    `action` names the operation in logs only.
    """
    try:
        yield
    except HTTPException:
        raise
    except ProfitiError as exc:
        raise to_http(exc) from exc
    except gexc.NotFound as exc:
        logger.warning("%s: not found (%s)", action, exc)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_MSG) from exc
    except gexc.PermissionDenied as exc:
        logger.warning("%s: permission denied (%s)", action, exc)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=FORBIDDEN_MSG) from exc
    except (gexc.FailedPrecondition, gexc.Aborted) as exc:
        logger.warning("%s: write conflict (%s)", action, exc)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=CONFLICT_MSG) from exc
    except gexc.GoogleAPICallError as exc:
        logger.exception("%s failed", action)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=UNAVAILABLE_MSG) from exc
