import subprocess
import time
import os
import signal
import sys

def run_services():
    # Define paths
    base_dir = os.path.dirname(os.path.abspath(__file__))
    backend_dir = os.path.join(base_dir, "backend")
    processes = []

    print("Starting services...")

    # Start API
    print("Starting API (FastAPI)...")
    processes.append(subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "main:app", "--reload"],
        cwd=backend_dir,
    ))

    # Start durable worker only when a broker is configured
    if os.environ.get("REDIS_URL"):
        print("Starting worker (Celery)...")
        processes.append(subprocess.Popen(
            [sys.executable, "-m", "celery", "-A", "workers.celery_app", "worker", "--loglevel=info"],
            cwd=backend_dir,
        ))
    else:
        print("REDIS_URL not set: jobs run in-process inside the API")

    print("\nServices are running!")
    print("   FastAPI Backend:  http://127.0.0.1:8000")
    print("\nPress Ctrl+C to stop all services.\n")

    try:
        # Keep the script running
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\n\nStopping services...")

        for process in processes:
            if sys.platform == "win32":
                subprocess.run(["taskkill", "/F", "/T", "/PID", str(process.pid)], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
            else:
                process.send_signal(signal.SIGTERM)
        for process in processes:
            process.wait()

        print("All services stopped.")

if __name__ == "__main__":
    run_services()
