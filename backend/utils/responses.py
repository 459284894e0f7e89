from fastapi.responses import HTMLResponse, JSONResponse


def json_response(content, status=200):
    return JSONResponse(status_code=status, content=content)


def error_response(message, status=400, **extra):
    return JSONResponse(
        status_code=status,
        content={"error": message, **extra},
    )


def html_response(body, status=200):
    return HTMLResponse(content=body, status_code=status)
