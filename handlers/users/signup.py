body = {"email": pydantic.EmailStr, "name": (str, "anonymous")};

async def handler(ctx):
    logger.info("signup_received", email=ctx["body"]["email"])
    return {"ok": True, "email": ctx["body"]["email"], "name": ctx["body"]["name"]}
