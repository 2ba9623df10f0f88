# scripts/run_tasks_manually.py
import asyncio
import logging
import sys
import os

# Хак для корректной работы импортов
sys.path.append(os.getcwd())

from procredit.services.processed_event_cleanup import cleanup_processed_events_task


async def main():
    """
    Запуск фоновых задач вручную, без планировщика.
    """
    print("--- Manual Task Runner ---")

    print("\n[1/1] Running: cleanup_processed_events_task...")
    # Задача синхронная, выполняем ее в отдельном потоке
    await asyncio.to_thread(cleanup_processed_events_task)
    print("Done.")

    print("\n--- All tasks completed! ---")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, stream=sys.stdout, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nScript interrupted by user.")
