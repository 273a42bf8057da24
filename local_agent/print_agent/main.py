import logging

import uvicorn

from print_agent import env


def run():
    logging.basicConfig(level=env.LOG_LEVEL)
    uvicorn.run("print_agent.api:app", host=env.AGENT_HOST, port=env.AGENT_PORT, log_level=env.LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
