import orjson
from typing import Any, Union

def dumps(obj: Any, indent: bool = False) -> str:
    """Сериализует объект в JSON-строку, datetime пишется в ISO 8601."""
    options = orjson.OPT_NON_STR_KEYS
    if indent:
        options |= orjson.OPT_INDENT_2
    return orjson.dumps(obj, option=options).decode('utf-8')

def loads(s: Union[str, bytes]) -> Any:
    """Десериализует JSON-строку в объект Python."""
    if isinstance(s, str):
        s = s.encode('utf-8')
    return orjson.loads(s)
