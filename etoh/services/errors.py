# etoh/services/errors.py
"""
Ошибки движка дружбы.

Ожидаемые отказы новой заявки (неизвестный email, сам себе, уже друзья,
уже есть заявка) ошибками не считаются: propose() возвращает их результатом.
"""


class FriendsError(Exception):
    code = "friends_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)


class NotAuthorized(FriendsError):
    """Вызывающий не та сторона, которой разрешена мутация."""
    code = "not_authorized"


class FriendRequestUnavailable(FriendsError):
    """
    Заявку нельзя захватить: неизвестный id, вызывающий не получатель или её
    уже разрешил конкурентный вызов. Для всех трёх случаев одна ошибка.
    """
    code = "request_not_found"


class StoreFailure(FriendsError):
    """Ошибка БД. Транзакция откачена, повторов нет."""
    code = "store_failure"


class PairIntegrityError(StoreFailure):
    """После записи строки пары дружбы несимметричны."""
    code = "pair_integrity"
