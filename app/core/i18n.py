from typing import Any, Generic, TypeVar

from fastapi import Depends, Query, Request
from pydantic import BaseModel
from typing_extensions import Annotated

from app.core.config import get_settings

T = TypeVar("T")

MESSAGES: dict[str, dict[str, str]] = {
    "pt-BR": {
        "serverError": "Erro interno do servidor",
        "notFound": "Recurso não encontrado",
        "validationError": "Erro de validação",
        "success": "Sucesso",
        "projectCreated": "Projeto criado com sucesso",
        "projectUpdated": "Projeto atualizado com sucesso",
        "projectDeleted": "Projeto removido com sucesso",
        "projectNotFound": "Projeto não encontrado",
        "projectHasTasks": "Não é possível excluir projeto que possui tarefas vinculadas",
        "projects": "Projetos listados com sucesso",
        "project": "Projeto encontrado com sucesso",
        "taskCreated": "Tarefa criada com sucesso",
        "taskUpdated": "Tarefa atualizada com sucesso",
        "taskDeleted": "Tarefa removida com sucesso",
        "taskNotFound": "Tarefa não encontrada",
        "tasks": "Tarefas listadas com sucesso",
        "task": "Tarefa encontrada com sucesso",
        "databaseConnectionError": "Erro de conexão com o banco de dados",
        "integrityError": "Violação de integridade dos dados",
        "cacheError": "Erro de cache, operação realizada sem cache",
    },
    "en-US": {
        "serverError": "Internal server error",
        "notFound": "Resource not found",
        "validationError": "Validation error",
        "success": "Success",
        "projectCreated": "Project created successfully",
        "projectUpdated": "Project updated successfully",
        "projectDeleted": "Project deleted successfully",
        "projectNotFound": "Project not found",
        "projectHasTasks": "Cannot delete project that has linked tasks",
        "projects": "Projects listed successfully",
        "project": "Project found successfully",
        "taskCreated": "Task created successfully",
        "taskUpdated": "Task updated successfully",
        "taskDeleted": "Task deleted successfully",
        "taskNotFound": "Task not found",
        "tasks": "Tasks listed successfully",
        "task": "Task found successfully",
        "databaseConnectionError": "Database connection error",
        "integrityError": "Data integrity violation",
        "cacheError": "Cache error, operation performed without cache",
    },
    # Partial catalog; missing keys fall back to the default language
    "es-ES": {
        "serverError": "Error interno del servidor",
        "notFound": "Recurso no encontrado",
        "validationError": "Error de validación",
        "success": "Éxito",
        "projectCreated": "Proyecto creado exitosamente",
        "projectUpdated": "Proyecto actualizado exitosamente",
        "projectDeleted": "Proyecto eliminado exitosamente",
        "taskCreated": "Tarea creada exitosamente",
        "taskUpdated": "Tarea actualizada exitosamente",
        "taskDeleted": "Tarea eliminada exitosamente",
    },
}

LANGUAGE_ALIASES = {
    "pt": "pt-BR",
    "pt-br": "pt-BR",
    "en": "en-US",
    "en-us": "en-US",
    "es": "es-ES",
    "es-es": "es-ES",
}


def detect_language(
    lang: str | None, accept_language: str | None, default: str = "pt-BR"
) -> str:
    """
    Pick the response language.

    An explicit ``lang`` wins (unknown values fall back to the default);
    otherwise the first Accept-Language tag is matched in full, then by its
    primary subtag.
    """
    if lang:
        return LANGUAGE_ALIASES.get(lang.lower(), default)

    if not accept_language:
        return default

    full = accept_language.split(",")[0].split(";")[0].strip()
    if full in MESSAGES:
        return full
    primary = full.split("-")[0].lower()
    return LANGUAGE_ALIASES.get(primary, default)


class ApiResponse(BaseModel, Generic[T]):
    success: bool
    message: str
    data: T | None = None
    language: str


class Translator:
    def __init__(self, language: str, default: str = "pt-BR"):
        self.language = language
        self.default = default

    def __call__(self, key: str, **params: Any) -> str:
        message = (
            MESSAGES.get(self.language, {}).get(key)
            or MESSAGES.get(self.default, {}).get(key)
            or key
        )
        for name, value in params.items():
            message = message.replace(f"{{{name}}}", str(value))
        return message

    def respond(self, data: Any = None, key: str = "success", status_code: int = 200) -> dict:
        return {
            "success": status_code < 400,
            "message": self(key),
            "data": data,
            "language": self.language,
        }


def translator_for(request: Request) -> Translator:
    default = get_settings().default_language
    language = detect_language(
        request.query_params.get("lang"),
        request.headers.get("accept-language"),
        default,
    )
    return Translator(language, default)


def get_translator(
    request: Request,
    lang: str | None = Query(default=None, description="Response language"),
) -> Translator:
    # ``lang`` is declared so it shows up in the OpenAPI schema
    return translator_for(request)


TranslatorDep = Annotated[Translator, Depends(get_translator)]
