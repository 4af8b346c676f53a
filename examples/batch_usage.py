"""
Пример батч-обработки с HTTP-клиентом транскрипции.

Блокирующие запросы requests выполняются в пуле потоков, а менеджер
конкурентности ограничивает число одновременных обращений к API.
"""

import asyncio
import os
from typing import Any, Dict, List

import requests

from concurrency_manager import (
    BatchConfig,
    ConcurrencyManager,
    ManagerConfig,
    NonRetryableError,
    RequestDeduplicator,
    RequestOptions,
    create_smart_batch_processor,
    setup_logging
)


API_URL = os.getenv("TRANSCRIPTION_API_URL", "https://httpbin.org/post")


class TranscriptionClient:
    """Минимальный клиент API транскрипции."""

    def __init__(self, base_url: str = API_URL, api_key: str = "demo-key", timeout: float = 10.0):
        self.base_url = base_url
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {api_key}"})

    def transcribe(self, audio_id: str) -> Dict[str, Any]:
        response = self.session.post(self.base_url, json={"audio_id": audio_id}, timeout=self.timeout)
        if response.status_code in (401, 403):
            raise NonRetryableError(f"Authentication failed for {audio_id}")
        response.raise_for_status()
        return {"audio_id": audio_id, "status": response.status_code}

    def close(self):
        self.session.close()


async def run():
    print("=== Пример батч-обработки ===\n")

    client = TranscriptionClient()
    manager = ConcurrencyManager(ManagerConfig(max_concurrency=3, timeout=15.0, retry_delay=0.5))
    deduplicator = RequestDeduplicator()
    loop = asyncio.get_running_loop()

    def transcribe_one(audio_id: str):
        # Одинаковые audio_id в одном батче отправляются один раз
        return deduplicator.execute(
            audio_id,
            lambda: manager.execute(
                lambda: loop.run_in_executor(None, client.transcribe, audio_id),
                f"transcribe_{audio_id}",
                RequestOptions(retry_count=2)
            )
        )

    async def process_chunk(chunk: List[str]) -> List[Dict[str, Any]]:
        return list(await asyncio.gather(*[transcribe_one(audio_id) for audio_id in chunk]))

    audio_ids = [f"audio-{i % 8}" for i in range(12)]
    processor = create_smart_batch_processor(audio_ids, BatchConfig(max_retries=1, retry_delay=0.5))
    processor.set_progress_callback(
        lambda event: print(f"   {event.status.value:>10}: {event.processed}/{event.total} ({event.percentage:.0f}%)")
    )

    try:
        report = await processor.process(audio_ids, process_chunk)
    finally:
        await manager.shutdown()
        client.close()

    print(f"\nУспех: {report.success}")
    print(f"Обработано: {report.processed_items}/{report.total_items}")
    print(f"Длительность: {report.performance.duration:.2f}s, ретраев: {report.performance.retry_count}")
    for error in report.errors:
        print(f"Ошибка батча {error.batch_index}: {error.error_type}: {error.message}")


def main():
    setup_logging(level="WARNING")
    asyncio.run(run())


if __name__ == "__main__":
    main()
