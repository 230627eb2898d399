from campussync import create_app

app = create_app()
