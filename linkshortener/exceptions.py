"""Доменные исключения сервиса сокращения ссылок.

Слой работы с данными (crud) выбрасывает эти исключения, а роутеры
переводят их в HTTP-ответы: JSON для API и HTML-страницы для интерфейса.
"""


class LinkShortenerError(Exception):
    """Базовое исключение сервиса"""
    pass


class LinkError(LinkShortenerError):
    """Базовое исключение для ошибок, связанных со ссылками"""
    pass


class LinkNotFoundError(LinkError):
    """Ссылка с указанным коротким кодом не найдена"""
    pass


class LinkExpiredError(LinkError):
    """Срок действия ссылки истек"""
    pass


class LinkAccessDeniedError(LinkError):
    """Текущий пользователь не является владельцем ссылки"""
    pass


class InvalidURLError(LinkError):
    """URL назначения недействителен"""
    pass


class InvalidShortCodeError(LinkError):
    """Короткий код не соответствует требованиям"""
    pass


class ShortCodeTakenError(LinkError):
    """Короткий код уже занят"""
    pass


class ShortCodeGenerationError(LinkError):
    """Не удалось сгенерировать уникальный короткий код"""
    pass


class UserError(LinkShortenerError):
    pass


class UserAlreadyExistsError(UserError):
    """Пользователь с таким именем или email уже существует"""
    pass


class InvalidCredentialsError(UserError):
    """Неверное имя пользователя или пароль"""
    pass
