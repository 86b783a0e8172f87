from fastapi import APIRouter
from ..models.schemas import AUTOLOGIN_SCHEMA, LOGIN_SCHEMA, MOODLE_LOGIN_SCHEMA, SchemasResp
from ..validation import describe_schema

router = APIRouter()

ENDPOINT_SCHEMAS = {
    "/api/login": LOGIN_SCHEMA,
    "/api/autologin": AUTOLOGIN_SCHEMA,
    "/api/moodle/login": MOODLE_LOGIN_SCHEMA,
}


@router.get("/schemas", response_model=SchemasResp)
async def get_endpoint_schemas():
    """
    各接口 body 的校验规则（正则以字符串形式给出），方便客户端提前校验
    """
    return SchemasResp(
        schemas={path: describe_schema(schema) for path, schema in ENDPOINT_SCHEMAS.items()}
    )
