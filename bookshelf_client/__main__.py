from bookshelf_client.ui.main_window import run_app


if __name__ == "__main__":
    run_app()
