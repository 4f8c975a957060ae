"""RQ worker process entrypoint for immediate file cleanup attempts."""

import logging

from rq import Worker

from services.cleanup_queue import CLEANUP_QUEUE_NAME, get_redis_connection


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    redis_conn = get_redis_connection()
    worker = Worker([CLEANUP_QUEUE_NAME], connection=redis_conn)
    worker.work()


if __name__ == "__main__":
    main()
