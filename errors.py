from typing import Optional, Sequence


class FinanceError(ValueError):
    """Recoverable, user-correctable failure of a domain operation.

    ``code`` is the stable machine-readable identifier returned by the API,
    ``message`` the localized text shown to the end user.
    """

    code = "APP_ERROR"
    status_code = 400
    default_message = "Solicitud inválida"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidDate(FinanceError):
    code = "INVALID_DATE"
    default_message = "La fecha no es válida"


class DuplicateName(FinanceError):
    code = "DUPLICATE_NAME"
    default_message = "Ya existe una categoría con este nombre"


class ParentNotFound(FinanceError):
    code = "INVALID_PARENT"
    status_code = 404
    default_message = "Categoría padre no encontrada"


class TypeMismatch(FinanceError):
    code = "TYPE_MISMATCH"
    default_message = "El tipo de la categoría padre no coincide con el tipo del hijo"


class DepthExceeded(FinanceError):
    code = "MAX_DEPTH_EXCEEDED"
    default_message = "Se excedió la profundidad máxima de jerarquía (3 niveles)"


class CircularReference(FinanceError):
    code = "CIRCULAR_REFERENCE"
    default_message = "Referencia circular detectada en la jerarquía de categorías"


class HasChildren(FinanceError):
    code = "CATEGORY_HAS_CHILDREN"
    default_message = "La categoría tiene subcategorías"


class HasTransactions(FinanceError):
    code = "CATEGORY_IN_USE"
    default_message = "La categoría tiene transacciones asociadas"


class InvalidRecurrenceSpec(FinanceError):
    code = "INVALID_RECURRENCE"
    default_message = "La configuración de recurrencia no es válida"


class CategoryNotFound(FinanceError):
    code = "CATEGORY_NOT_FOUND"
    status_code = 404
    default_message = "Categoría no encontrada"


class EntryNotFound(FinanceError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Registro no encontrado"


class AccountNotFound(FinanceError):
    code = "ACCOUNT_NOT_FOUND"
    status_code = 404
    default_message = "Cuenta no encontrada"


class CollectorNotFound(FinanceError):
    code = "COLLECTOR_NOT_FOUND"
    status_code = 404
    default_message = "Cobrador no encontrado"


class CollectorInUse(FinanceError):
    code = "COLLECTOR_IN_USE"
    default_message = "El cobrador tiene gastos asociados"


class EmailAlreadyRegistered(FinanceError):
    code = "USER_EXISTS"
    status_code = 409
    default_message = "Ya existe un usuario con este correo electrónico"


class InvalidCredentials(FinanceError):
    code = "INVALID_CREDENTIALS"
    status_code = 401
    default_message = "Correo electrónico o contraseña inválidos"


class InvalidToken(FinanceError):
    code = "INVALID_TOKEN"
    status_code = 401
    default_message = "Token de acceso inválido o expirado"


class PartialMaterialization(FinanceError):
    code = "PARTIAL_MATERIALIZATION"
    status_code = 207

    def __init__(
        self,
        succeeded: int,
        total: int,
        reason: str,
        records: Sequence[object] = (),
    ) -> None:
        self.succeeded = succeeded
        self.total = total
        self.failed_at = succeeded + 1
        self.reason = reason
        self.records = list(records)
        super().__init__(
            f"Se crearon {succeeded} de {total} registros; "
            f"falló la ocurrencia {self.failed_at}"
        )

    @property
    def summary(self) -> str:
        return (
            f"{self.succeeded} of {self.total} succeeded, "
            f"failed at occurrence {self.failed_at}"
        )
