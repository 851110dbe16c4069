"""CLI commands for the exam admin backend.

Commands:
- init-db: Create the database schema
- seed: Insert default class levels, subjects and an exam structure
- create-user: Create an account of any role
- models: List AI extraction models
- extract-questions: AI-extract questions from a PDF into an import batch
- import-batch: Commit a reviewed batch into the question bank
- serve: Run the HTTP API
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from examadmin.config.app_config import load_app_config
from examadmin.core.pdf_extractor import PdfExtractionError
from examadmin.core.question_extractor import (
    DEFAULT_MODEL,
    QuestionExtractionError,
    list_available_models,
)
from examadmin.core.question_import import commit_batch, import_pdf
from examadmin.core.security import ROLES, validate_password_strength
from examadmin.db.class_levels_repository import (
    add_subject_to_class_level,
    create_class_level,
    get_class_level_by_slug,
)
from examadmin.db.database import get_db_path, init_db
from examadmin.db.exam_structures_repository import create_exam_structure, list_exam_structures
from examadmin.db.subjects_repository import create_subject, get_subject_by_slug
from examadmin.db.users_repository import create_user as do_create_user
from examadmin.errors import ExamAdminError

app = typer.Typer(
    name="examadmin",
    help="Admin backend for school exams and question banks.",
    no_args_is_help=True,
)

console = Console()

# (slug, name_en, name_mr)
DEFAULT_CLASS_LEVELS = [
    ("class-5", "Class 5", "इयत्ता ५ वी"),
    ("class-8", "Class 8", "इयत्ता ८ वी"),
]

# (slug, name_en, name_mr, icon)
DEFAULT_SUBJECTS = [
    ("scholarship", "Scholarship", "शिष्यवृत्ती", "award"),
    ("english", "English", "इंग्रजी", "book"),
    ("information-technology", "Information Technology", "माहिती तंत्रज्ञान", "monitor"),
]

DEFAULT_STRUCTURE_SECTIONS = [
    {
        "code": "A",
        "name_en": "Single answer",
        "name_mr": "एक योग्य पर्याय",
        "question_type": "mcq_single",
        "question_count": 20,
        "marks_per_question": 2,
        "total_marks": 40,
        "order_index": 0,
    },
    {
        "code": "B",
        "name_en": "Two correct answers",
        "name_mr": "दोन योग्य पर्याय",
        "question_type": "mcq_two",
        "question_count": 5,
        "marks_per_question": 2,
        "total_marks": 10,
        "order_index": 1,
    },
]


def _fail(message: str) -> None:
    console.print(f"[red]✗ {message}[/red]")
    raise typer.Exit(code=1)


@app.command(name="init-db")
def init_database() -> None:
    """Create the database schema (safe to re-run)."""
    init_db()
    console.print(f"[green]✓ Database ready[/green] [dim]{get_db_path()}[/dim]")


@app.command()
def seed() -> None:
    """Insert default class levels, subjects and an exam structure.

    Existing slugs are left alone, so seeding twice changes nothing.
    """
    init_db()

    levels = []
    for slug, name_en, name_mr in DEFAULT_CLASS_LEVELS:
        level = get_class_level_by_slug(slug)
        if level is None:
            level = create_class_level(name_en=name_en, name_mr=name_mr, slug=slug)
            console.print(f"[green]✓ Class level {name_en}[/green]")
        levels.append(level)

    subjects = []
    for slug, name_en, name_mr, icon in DEFAULT_SUBJECTS:
        subject = get_subject_by_slug(slug)
        if subject is None:
            subject = create_subject(name_en=name_en, name_mr=name_mr, slug=slug, icon=icon)
            console.print(f"[green]✓ Subject {name_en}[/green]")
        subjects.append(subject)

    # Already-assigned pairs come back as soft failures
    mapped = sum(
        add_subject_to_class_level(level.id, subject.id).success
        for level in levels
        for subject in subjects
    )
    if mapped:
        console.print(f"[green]✓ {mapped} subject mappings[/green]")

    scholarship = subjects[0]
    if not list_exam_structures(subject_id=scholarship.id):
        create_exam_structure(
            name_en="Scholarship practice paper",
            name_mr="शिष्यवृत्ती सराव प्रश्नपत्रिका",
            subject_id=scholarship.id,
            duration_minutes=90,
            total_questions=sum(s["question_count"] for s in DEFAULT_STRUCTURE_SECTIONS),
            total_marks=sum(s["total_marks"] for s in DEFAULT_STRUCTURE_SECTIONS),
            sections=DEFAULT_STRUCTURE_SECTIONS,
            is_template=True,
        )
        console.print("[green]✓ Exam structure Scholarship practice paper[/green]")

    console.print("[green]✓ Seed complete[/green]")


@app.command(name="create-user")
def create_user(
    email: str = typer.Argument(..., help="Login email"),
    password: str = typer.Option(..., "--password", "-p", help="Initial password"),
    name: str | None = typer.Option(None, "--name", "-n", help="Display name"),
    role: str = typer.Option("student", "--role", "-r", help=f"One of: {', '.join(ROLES)}"),
) -> None:
    """Create a user account and print its id."""
    problems = validate_password_strength(password)
    if problems:
        _fail("; ".join(problems))

    init_db()
    try:
        user = do_create_user(email=email, password=password, name=name, role=role)
    except ExamAdminError as e:
        _fail(str(e))

    console.print(f"[green]✓ Created {user.role} {user.email}[/green]")
    console.print(f"  [dim]user_id:[/dim] {user.id}")


@app.command()
def models() -> None:
    """List AI models and whether their provider key is set."""
    table = Table(title="AI extraction models")
    table.add_column("id")
    table.add_column("provider")
    table.add_column("$/1k tokens", justify="right")
    table.add_column("available")

    for model in list_available_models():
        table.add_row(
            model["id"],
            model["provider"],
            f"{model['cost_per_1k_tokens']:.4f}",
            "[green]yes[/green]" if model["available"] else "[red]no[/red]",
        )

    console.print(table)


@app.command(name="extract-questions")
def extract_questions(
    file: str = typer.Argument(..., help="Path to the question paper PDF"),
    subject: str = typer.Option("scholarship", "--subject", "-s", help="Subject slug"),
    model: str = typer.Option(DEFAULT_MODEL, "--model", "-m", help="AI model id"),
    answer_key: str | None = typer.Option(
        None, "--answer-key", "-k", help="Optional answer key PDF"
    ),
    max_questions: int | None = typer.Option(
        None, "--max-questions", help="Stop after this many questions"
    ),
    created_by: str = typer.Option("cli", "--created-by", help="User id recorded on the batch"),
) -> None:
    """Extract questions from a PDF into a pending import batch."""
    pdf_path = Path(file).expanduser()
    if not pdf_path.exists():
        _fail(f"File not found: {pdf_path}")

    key_bytes = None
    if answer_key:
        key_path = Path(answer_key).expanduser()
        if not key_path.exists():
            _fail(f"File not found: {key_path}")
        key_bytes = key_path.read_bytes()

    init_db()
    console.print(f"[blue]Extracting questions from {pdf_path.name} with {model}...[/blue]")

    try:
        batch = import_pdf(
            data=pdf_path.read_bytes(),
            filename=pdf_path.name,
            subject_slug=subject,
            created_by=created_by,
            model=model,
            answer_key=key_bytes,
            max_questions=max_questions,
        )
    except PdfExtractionError as e:
        _fail(f"PDF error: {e}")
    except QuestionExtractionError as e:
        _fail(f"Extraction error: {e}")
    except ExamAdminError as e:
        _fail(str(e))

    flagged = sum(1 for q in batch.parsed_questions if q.get("parsing_errors"))
    console.print(f"[green]✓ {batch.question_count} questions extracted[/green]")
    console.print(f"  [dim]batch_id:[/dim] {batch.id}")
    console.print(f"  [dim]language:[/dim] {batch.metadata.get('detected_language') or '-'}")
    if flagged:
        console.print(f"[yellow]⚠ {flagged} questions need review[/yellow]")


@app.command(name="import-batch")
def import_batch(
    batch_id: str = typer.Argument(..., help="Import batch id"),
    created_by: str = typer.Option("cli", "--created-by", help="User id recorded on questions"),
    chapter_id: str | None = typer.Option(None, "--chapter", help="Default chapter id"),
    class_level: str | None = typer.Option(None, "--class-level", help="Default class level"),
    difficulty: str | None = typer.Option(None, "--difficulty", help="Default difficulty"),
    marks: int | None = typer.Option(None, "--marks", help="Default marks"),
) -> None:
    """Commit an import batch into its subject's question bank."""
    init_db()
    try:
        result = commit_batch(
            batch_id,
            created_by=created_by,
            default_chapter_id=chapter_id,
            default_class_level=class_level,
            default_difficulty=difficulty,
            default_marks=marks,
        )
    except ExamAdminError as e:
        _fail(str(e))

    console.print(
        f"[green]✓ Imported {result['imported_count']}/{result['total_count']} questions[/green]"
    )


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address"),
    port: int | None = typer.Option(None, "--port", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    config = load_app_config()
    uvicorn.run(
        "examadmin.web.api:app",
        host=host or config.server.host,
        port=port or config.server.port,
        reload=reload,
    )


if __name__ == "__main__":
    app()
