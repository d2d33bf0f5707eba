from pathlib import Path

from fastapi.templating import Jinja2Templates

from linkshortener.config import settings
from linkshortener.utils import build_short_url

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.globals["app_name"] = settings.APP_NAME
templates.env.globals["short_url"] = build_short_url
