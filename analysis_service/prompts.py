"""System instructions and prompt templates sent to the model."""

from __future__ import annotations

from analysis_service.extraction.types import Kind

_ANALYZE_INSTRUCTIONS: dict[Kind, str] = {
    Kind.IMAGE: (
        "You are an AI assistant that analyzes images. Provide detailed, accurate "
        "descriptions and answer questions about visual content."
    ),
    Kind.PDF: (
        "You are an AI assistant that analyzes PDF documents. Provide summaries, extract "
        "key information, and answer questions about the document content."
    ),
    Kind.PLAIN_TEXT: (
        "You are an AI assistant that analyzes text files. Provide summaries, analyze "
        "content, and answer questions about the text."
    ),
    Kind.CSV: (
        "You are an AI assistant that analyzes CSV data. Provide data insights, "
        "statistics, and answer questions about the dataset."
    ),
    Kind.RICH_DOCUMENT: (
        "You are an AI assistant that analyzes Word documents. Provide summaries, extract "
        "key information, and answer questions about the document content."
    ),
}

GENERIC_INSTRUCTION = (
    "You are an AI assistant that analyzes files. Provide helpful information and "
    "answer questions about the file content."
)

MULTI_FILE_INSTRUCTION = (
    "You are an AI assistant that analyzes multiple files together. Compare, contrast, "
    "and provide insights across all the provided files. When referencing specific "
    "files, mention them by name. Focus on actionable insights and key findings."
)

DEFAULT_IMAGE_QUERY = "Please analyze this image and provide a detailed description."
IMAGE_SUMMARY_QUERY = "Please provide a comprehensive summary of this image."

TRUNCATION_MARKER = "\n... [Content truncated due to length]"


def analyze_instruction(kind: Kind) -> str:
    return _ANALYZE_INSTRUCTIONS.get(kind, GENERIC_INSTRUCTION)


def summary_instruction(kind: Kind) -> str:
    return (
        "You are an AI assistant that creates concise summaries. Focus on the main points, "
        f"key information, and important details from {kind.value} content."
    )


def extraction_instruction(kind: Kind, data_type: str) -> str:
    return (
        "You are an AI assistant that extracts specific data from documents. "
        f"Extract {data_type} from the {kind.value} content and format it clearly."
    )


def single_file_prompt(display_name: str, content: str, query: str) -> str:
    return f"File: {display_name}\nContent: {content}\n\nQuestion: {query}"


def summary_prompt(content: str) -> str:
    return f"Please provide a comprehensive summary of the following content:\n\n{content}"


def extraction_prompt(data_type: str, content: str) -> str:
    return (
        f"Extract {data_type} from the following content and format it in a "
        f"structured way:\n\n{content}"
    )


def failed_file_placeholder(display_name: str, reason: str) -> str:
    return f"[Error processing file {display_name}: {reason}]"


def image_placeholder(display_name: str) -> str:
    return f"[Image: {display_name}]"
