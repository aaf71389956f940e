handler = lambda ctx: "pong"
