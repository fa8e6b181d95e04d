"""Card rendering: JiraIssue → Card, localized by an explicit language tag."""

import hashlib
import uuid

from jiracards.models import Card, CardAction, CardBody, CardBodyField, CardHeader, CardUserInput, JiraIssue

BASE_LANGUAGE = "en"
MAX_COMMENTS = 2  # most recent comments shown on the card

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "field.project": "Project",
        "field.components": "Components",
        "field.reporter": "Reporter",
        "field.assignee": "Assignee",
        "field.status": "Status",
        "field.comments": "Comments",
        "value.unassigned": "Unassigned",
        "value.none": "None",
        "action.comment": "Comment",
        "action.comment.completed": "Commented",
        "action.comment.input": "Add a comment",
        "action.watch": "Watch",
        "action.watch.completed": "Watching",
        "action.open": "Open in Jira",
    },
    "es": {
        "field.project": "Proyecto",
        "field.components": "Componentes",
        "field.reporter": "Informador",
        "field.assignee": "Responsable",
        "field.status": "Estado",
        "field.comments": "Comentarios",
        "value.unassigned": "Sin asignar",
        "value.none": "Ninguno",
        "action.comment": "Comentar",
        "action.comment.completed": "Comentado",
        "action.comment.input": "Añadir un comentario",
        "action.watch": "Observar",
        "action.watch.completed": "Observando",
        "action.open": "Abrir en Jira",
    },
    "de": {
        "field.project": "Projekt",
        "field.components": "Komponenten",
        "field.reporter": "Autor",
        "field.assignee": "Bearbeiter",
        "field.status": "Status",
        "field.comments": "Kommentare",
        "value.unassigned": "Nicht zugewiesen",
        "value.none": "Keine",
        "action.comment": "Kommentieren",
        "action.comment.completed": "Kommentiert",
        "action.comment.input": "Kommentar hinzufügen",
        "action.watch": "Beobachten",
        "action.watch.completed": "Beobachtet",
        "action.open": "In Jira öffnen",
    },
    "fr": {
        "field.project": "Projet",
        "field.components": "Composants",
        "field.reporter": "Rapporteur",
        "field.assignee": "Responsable",
        "field.status": "État",
        "field.comments": "Commentaires",
        "value.unassigned": "Non assigné",
        "value.none": "Aucun",
        "action.comment": "Commenter",
        "action.comment.completed": "Commenté",
        "action.comment.input": "Ajouter un commentaire",
        "action.watch": "Suivre",
        "action.watch.completed": "Suivi",
        "action.open": "Ouvrir dans Jira",
    },
}


def resolve_language(tag: str | None, default: str = BASE_LANGUAGE) -> str:
    """Pick the best supported language from an Accept-Language value.

    "de-CH,fr;q=0.9,en;q=0.8" → "de". Unknown or empty → default.
    """
    if default not in MESSAGES:
        default = BASE_LANGUAGE
    if not tag:
        return default

    ranked: list[tuple[float, int, str]] = []
    for position, part in enumerate(tag.split(",")):
        lang, _, params = part.strip().partition(";")
        quality = 1.0
        params = params.strip()
        if params.startswith("q="):
            try:
                quality = float(params[2:])
            except ValueError:
                quality = 0.0
        primary = lang.strip().split("-")[0].lower()
        if primary and quality > 0:
            ranked.append((-quality, position, primary))

    for _, _, primary in sorted(ranked):
        if primary in MESSAGES:
            return primary
    return default


def _routing_base(routing_prefix: str) -> str:
    if not routing_prefix:
        return "/"
    return routing_prefix if routing_prefix.endswith("/") else routing_prefix + "/"


def _card_hash(issue: JiraIssue, fields: list[CardBodyField]) -> str:
    digest = hashlib.sha1()
    for part in (issue.key, issue.summary, issue.description or "", issue.updated or ""):
        digest.update(part.encode("utf-8"))
        digest.update(b"\0")
    for field in fields:
        digest.update(f"{field.title}={field.description}".encode())
        digest.update(b"\0")
    return digest.hexdigest()


def build_card(
    issue: JiraIssue,
    *,
    base_url: str,
    routing_prefix: str,
    language: str | None = None,
) -> Card:
    """Render a card for the issue. Pure: same inputs always give the same card."""
    msg = MESSAGES[resolve_language(language)]
    browse_url = f"{base_url.rstrip('/')}/browse/{issue.key}"

    fields = [
        CardBodyField(title=msg["field.project"], description=issue.project or msg["value.none"]),
        CardBodyField(
            title=msg["field.components"],
            description=", ".join(issue.components) if issue.components else msg["value.none"],
        ),
        CardBodyField(title=msg["field.reporter"], description=issue.reporter or msg["value.none"]),
        CardBodyField(title=msg["field.assignee"], description=issue.assignee or msg["value.unassigned"]),
        CardBodyField(title=msg["field.status"], description=issue.status),
    ]
    for comment in issue.comments[-MAX_COMMENTS:]:
        fields.append(
            CardBodyField(type="COMMENT", title=msg["field.comments"], description=f"{comment.author}: {comment.body}")
        )

    actions_base = f"{_routing_base(routing_prefix)}api/v1/issues/{issue.id}"
    actions = [
        CardAction(
            id=f"{issue.key}-comment",
            action_key="USER_INPUT",
            label=msg["action.comment"],
            completed_label=msg["action.comment.completed"],
            url=f"{actions_base}/comment",
            user_input=[CardUserInput(id="body", label=msg["action.comment.input"])],
        ),
        CardAction(
            id=f"{issue.key}-watch",
            action_key="DIRECT",
            label=msg["action.watch"],
            completed_label=msg["action.watch.completed"],
            url=f"{actions_base}/watchers",
        ),
        CardAction(
            id=f"{issue.key}-open",
            action_key="OPEN_IN",
            label=msg["action.open"],
            url=browse_url,
            type="GET",
            primary=True,
        ),
    ]

    card_hash = _card_hash(issue, fields)
    return Card(
        id=str(uuid.uuid5(uuid.NAMESPACE_URL, f"{browse_url}#{card_hash}")),
        backend_id=issue.key,
        hash=card_hash,
        header=CardHeader(title=f"[{issue.key}] {issue.summary}", subtitle=[issue.status] if issue.status else []),
        body=CardBody(description=issue.description, fields=fields),
        actions=actions,
    )
