import subprocess
import sys
import os

def main():
    # Get the project root directory (where this script is)
    project_root = os.path.dirname(os.path.abspath(__file__))
    src_path = os.path.join(project_root, "src")

    # Prepare environment with src in PYTHONPATH
    env = os.environ.copy()
    if "PYTHONPATH" in env:
        env["PYTHONPATH"] = src_path + os.pathsep + env["PYTHONPATH"]
    else:
        env["PYTHONPATH"] = src_path

    port = env.get("PORT", "3000")
    print(f"Starting Calix API...")
    print(f"Project Root: {project_root}")
    print(f"Source Path: {src_path}")

    # We run it as a module 'uvicorn' to ensure we use the same python interpreter
    print(f"Starting FastAPI server on port {port}...")
    api_process = subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "calix.api:app", "--host", "0.0.0.0", "--port", port],
        cwd=project_root, # Run from root so .env files are found
        env=env
    )

    try:
        api_process.wait()
        print("FastAPI process exited.")
    except KeyboardInterrupt:
        print("\nStopping services...")
    finally:
        if api_process.poll() is None:
            api_process.terminate()
            try:
                api_process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                api_process.kill()
        print("Services stopped.")

if __name__ == "__main__":
    main()
