def handler(ctx):
    ctx["echo"] = ctx.get("rawBody")
    return ctx
