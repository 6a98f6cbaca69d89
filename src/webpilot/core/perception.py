"""Page perception: collects a bounded snapshot of interactive elements and renders it for the LLM."""

from typing import Any, Dict, Iterable, List, Optional, Sequence

from .models import (
    ChoiceOption,
    Element,
    Heading,
    IndexedSelector,
    PlainSelector,
    SelectorDescriptor,
    Snapshot,
    TabInfo,
    TextQualifiedSelector,
    xpath_literal,
)

MAX_ELEMENTS = 200
MAX_HEADINGS = 30
MAX_CONTENT_CHARS = 1200
MAX_OPTIONS = 30
MAX_SELECTOR_TEXT = 80
MAX_RENDERED_OPTIONS = 15

# Walks the DOM and reports raw facts per interactive element. Display text,
# selector descriptors and ids are derived in Python from these facts.
SNAPSHOT_SCRIPT = r"""
(limits) => {
    const maxElements = limits.maxElements;
    const maxHeadings = limits.maxHeadings;
    const maxContentChars = limits.maxContentChars;
    const maxOptions = limits.maxOptions;
    const maxSelectorText = limits.maxSelectorText || 80;

    const interactiveSelector = [
        'a[href]',
        'button',
        '[role="button"]',
        'a[class*="button" i]',
        '[role="switch"]',
        'input:not([type="hidden"])',
        'textarea',
        'select',
        '[role="link"]',
        '[role="menuitem"]',
        '[role="tab"]',
        '[role="option"]',
        '[contenteditable="true"]',
        '[tabindex]:not([tabindex="-1"])'
    ].join(', ');
    const canonicalSelector = 'a, button, input, textarea, select';

    const clip = (value, limit) => (value || '').trim().slice(0, limit);
    const cssValue = (value) => value.replace(/\\/g, '\\\\').replace(/"/g, '\\"');
    // Same string XPath normalize-space(.) produces for the node
    const xpathText = (node) => (node.textContent || '').replace(/[ \t\r\n]+/g, ' ').replace(/^ | $/g, '');

    const associatedLabel = (el) => {
        if (el.id) {
            for (const label of document.querySelectorAll('label[for]')) {
                if (label.htmlFor === el.id) return clip(label.textContent, 80);
            }
        }
        let parent = el.parentElement;
        while (parent && parent !== document.body) {
            if (parent.tagName === 'LABEL') return clip(parent.textContent, 80);
            parent = parent.parentElement;
        }
        return '';
    };

    const structuralSelector = (el) => {
        const tag = el.tagName.toLowerCase();
        const role = (el.getAttribute('role') || '').trim();
        const name = (el.getAttribute('name') || '').trim();
        const type = (el.getAttribute('type') || '').trim();
        let selector = tag;
        if (role) selector += '[role="' + cssValue(role) + '"]';
        if (name && (tag === 'input' || tag === 'textarea')) selector += '[name="' + cssValue(name) + '"]';
        if (type && tag === 'input') selector += '[type="' + cssValue(type) + '"]';
        return { selector, role, name, type };
    };

    const root = document.body;
    if (!root) {
        return { url: window.location.href, title: document.title || '', elements: [], headings: [], contentExcerpt: '', truncated: false };
    }

    const headings = [];
    for (const h of root.querySelectorAll('h1, h2, h3, h4, h5, h6')) {
        if (headings.length >= maxHeadings) break;
        const text = clip(h.textContent, 120);
        if (text) headings.push({ level: parseInt(h.tagName.charAt(1), 10), text });
    }

    const mainEl = root.querySelector('main, [role="main"]') || root;
    const contentExcerpt = (mainEl.textContent || '').replace(/\s+/g, ' ').trim().slice(0, maxContentChars);

    const seen = new Set();
    const elements = [];
    let truncated = false;

    const walkChildren = (el) => {
        for (let i = 0; i < el.children.length; i++) walk(el.children[i]);
    };

    const walk = (node) => {
        if (elements.length >= maxElements) {
            truncated = true;
            return;
        }
        if (node.nodeType !== Node.ELEMENT_NODE) return;
        const el = node;
        if (!el.matches || !el.matches(interactiveSelector)) {
            walkChildren(el);
            return;
        }

        const rect = el.getBoundingClientRect();
        const style = window.getComputedStyle(el);
        const roleAttr = el.getAttribute('role') || '';
        const buttonLike = roleAttr === 'button' || (el.tagName === 'A' && !!el.getAttribute('href'));
        const hasText = (el.innerText || el.textContent || el.getAttribute('aria-label') || '').trim().length > 0;
        if ((rect.width < 2 || rect.height < 2) && !(buttonLike && hasText)) {
            walkChildren(el);
            return;
        }
        if (style.visibility === 'hidden' || style.display === 'none') {
            walkChildren(el);
            return;
        }

        const ownText = (el.innerText || el.textContent || '').trim();
        const href = (el.getAttribute('href') || '').trim();
        const key = [el.tagName, ownText.slice(0, 50), href, Math.round(rect.top), Math.round(rect.left)].join('|');
        if (seen.has(key)) {
            walkChildren(el);
            return;
        }
        seen.add(key);

        const tag = el.tagName.toLowerCase();
        const structural = structuralSelector(el);
        const matches = document.querySelectorAll(structural.selector);
        const isField = tag === 'input' || tag === 'textarea' || tag === 'select';
        const fullText = xpathText(el);
        const selectorText = fullText.slice(0, maxSelectorText);
        const selectorTextExact = fullText.length <= maxSelectorText;
        let selectorTextIndex = 0;
        if (selectorText && matches.length > 1) {
            const textMatches = Array.prototype.filter.call(matches, (m) => {
                const candidate = xpathText(m);
                return selectorTextExact ? candidate === selectorText : candidate.startsWith(selectorText);
            });
            selectorTextIndex = Math.max(textMatches.indexOf(el), 0);
        }

        let options = null;
        if (tag === 'select' && el.options) {
            options = Array.from(el.options).slice(0, maxOptions).map((o) => ({
                value: o.value || o.text,
                label: clip(o.text, 60)
            }));
        }

        elements.push({
            tag,
            role: roleAttr,
            ownText: ownText.slice(0, 200),
            selectorText,
            selectorTextExact,
            selectorTextIndex,
            ariaLabel: clip(el.getAttribute('aria-label'), 100),
            title: clip(el.getAttribute('title'), 100),
            value: el.value !== undefined && el.value !== null ? String(el.value).trim().slice(0, 100) : '',
            placeholder: clip(el.getAttribute('placeholder'), 60),
            href,
            type: structural.type,
            name: structural.name,
            label: isField ? associatedLabel(el) : '',
            inDialog: !!(el.closest && el.closest('[role="dialog"], [role="alertdialog"], dialog')),
            disabled: el.hasAttribute('disabled') || el.getAttribute('aria-disabled') === 'true',
            options,
            selector: structural.selector,
            matchCount: matches.length,
            matchIndex: Array.prototype.indexOf.call(matches, el)
        });

        if (!el.matches(canonicalSelector)) walkChildren(el);
    };

    walk(root);
    return {
        url: window.location.href,
        title: document.title || '',
        elements,
        headings,
        contentExcerpt,
        truncated
    };
}
"""


def _clip(value: Any, limit: Optional[int] = None) -> str:
    text = "" if value is None else str(value).strip()
    return text[:limit] if limit is not None else text


def resolve_display_text(
    own_text: str = "",
    aria_label: str = "",
    title: str = "",
    value: str = "",
    placeholder: str = "",
    href: str = "",
    label: str = "",
) -> str:
    """Pick the text the LLM sees for an element; the first non-empty candidate wins."""
    candidates = (
        _clip(own_text, 200),
        _clip(aria_label, 100),
        _clip(title, 100),
        _clip(value, 100),
        f"placeholder: {_clip(placeholder, 60)}" if _clip(placeholder) else "",
        f"link: {_clip(href)}" if _clip(href) else "",
        f"label: {_clip(label, 80)}" if _clip(label) else "",
    )
    return next((candidate for candidate in candidates if candidate), "")


def _includes_name(tag: str) -> bool:
    return tag in ("input", "textarea")


def structural_xpath(tag: str, role: str = "", name: str = "", input_type: str = "") -> str:
    """XPath equivalent of the structural CSS selector built by the capture script."""
    path = f"//{tag}"
    if role:
        path += f"[@role={xpath_literal(role)}]"
    if name and _includes_name(tag):
        path += f"[@name={xpath_literal(name)}]"
    if input_type and tag == "input":
        path += f"[@type={xpath_literal(input_type)}]"
    return path


def derive_descriptor(
    tag: str,
    selector: str,
    match_count: int,
    match_index: int,
    text: str = "",
    role: str = "",
    name: str = "",
    input_type: str = "",
    text_exact: Optional[bool] = None,
    text_index: int = 0,
) -> SelectorDescriptor:
    """
    Choose how the element will be re-located at action time.

    Plain when the structural selector is unique, text-qualified when it is not
    and the element has text, otherwise the occurrence index. Text shorter than
    the capture limit is compared in full; longer text only by its prefix.
    """
    if match_count <= 1:
        return PlainSelector(selector)
    if text:
        exact = len(text) < MAX_SELECTOR_TEXT if text_exact is None else bool(text_exact)
        return TextQualifiedSelector(
            structural_xpath(tag, role, name, input_type), text, exact=exact, index=max(int(text_index or 0), 0)
        )
    return IndexedSelector(selector, max(match_index, 0))


def build_element(element_id: int, raw: Dict[str, Any]) -> Element:
    """Turn one raw record from the capture script into an Element."""
    tag = _clip(raw.get("tag")).lower()
    role_attr = _clip(raw.get("role"))
    placeholder = _clip(raw.get("placeholder"), 60)
    href = _clip(raw.get("href"))
    value = _clip(raw.get("value"), 100)
    label = _clip(raw.get("label"), 80)
    title = _clip(raw.get("title"), 100)

    text = resolve_display_text(
        own_text=raw.get("ownText", ""),
        aria_label=raw.get("ariaLabel", ""),
        title=title,
        value=value,
        placeholder=placeholder,
        href=href,
        label=label,
    )
    descriptor = derive_descriptor(
        tag=tag,
        selector=_clip(raw.get("selector")) or tag,
        match_count=int(raw.get("matchCount") or 0),
        match_index=int(raw.get("matchIndex") if raw.get("matchIndex") is not None else -1),
        text=raw.get("selectorText") or "",
        text_exact=raw.get("selectorTextExact"),
        text_index=raw.get("selectorTextIndex") or 0,
        role=role_attr,
        name=_clip(raw.get("name")),
        input_type=_clip(raw.get("type")),
    )
    options = tuple(
        ChoiceOption(value=str(option.get("value") or ""), label=_clip(option.get("label"), 60))
        for option in (raw.get("options") or [])[:MAX_OPTIONS]
    )

    return Element(
        id=element_id,
        role=role_attr or tag,
        tag=tag,
        text=text,
        selector=descriptor,
        placeholder=placeholder or None,
        href=href or None,
        value=value or None,
        type=_clip(raw.get("type")) or None,
        label=label or None,
        title=title or None,
        own_text=_clip(raw.get("ownText"), 200) or None,
        in_dialog=bool(raw.get("inDialog")),
        disabled=bool(raw.get("disabled")),
        options=options,
    )


def build_snapshot(
    payload: Dict[str, Any],
    tabs: Sequence[TabInfo] = (),
    active_tab_index: int = 0,
    max_elements: int = MAX_ELEMENTS,
    max_headings: int = MAX_HEADINGS,
    max_content_chars: int = MAX_CONTENT_CHARS,
) -> Snapshot:
    """Build an immutable Snapshot from the capture script payload; ids are dense from 1."""
    raw_elements: List[Dict[str, Any]] = list(payload.get("elements") or [])
    elements = tuple(
        build_element(index + 1, raw) for index, raw in enumerate(raw_elements[:max_elements])
    )
    headings = tuple(
        Heading(level=int(h.get("level") or 1), text=_clip(h.get("text"), 120))
        for h in (payload.get("headings") or [])[:max_headings]
        if _clip(h.get("text"))
    )

    return Snapshot(
        url=payload.get("url") or "",
        title=payload.get("title") or "",
        elements=elements,
        headings=headings,
        content_excerpt=_clip(payload.get("contentExcerpt"), max_content_chars),
        tabs=tuple(tabs),
        active_tab_index=active_tab_index,
        truncated=bool(payload.get("truncated")) or len(raw_elements) > max_elements,
    )


def _describe_options(options: Iterable[ChoiceOption]) -> str:
    options = list(options)
    names = [option.label or option.value for option in options]
    names = [name for name in names if name][:MAX_RENDERED_OPTIONS]
    suffix = "…" if len(options) > MAX_RENDERED_OPTIONS else ""
    return f" options: {', '.join(names)}{suffix}"


def describe_element(element: Element) -> str:
    """One line of the element list shown to the LLM."""
    line = f"  {element.id}. [{element.tag}"
    if element.type:
        line += f" type={element.type}"
    line += "]"
    if element.is_button:
        line += " (button)"
    if element.in_dialog:
        line += " (in modal/dialog)"
    if element.disabled:
        line += " (disabled)"
    if element.label:
        line += f' label="{element.label}"'
    if element.text:
        line += f' "{element.text[:100]}"'
    if element.placeholder:
        line += f' placeholder="{element.placeholder}"'
    if element.value:
        line += f' value="{element.value[:50]}"'
    if element.href:
        line += f' href="{element.href[:60]}"'
    if element.options:
        line += _describe_options(element.options)
    return line


def format_snapshot(snapshot: Snapshot, max_elements: int = MAX_ELEMENTS) -> str:
    """Render a snapshot as the compact text the decision oracle reads."""
    lines: List[str] = []

    if snapshot.tabs:
        lines.append("Tabs (current tab marked with *):")
        for tab in snapshot.tabs:
            mark = "*" if tab.index == snapshot.active_tab_index else " "
            title = (tab.title or "(no title)")[:50]
            url = (tab.url or "about:blank")[:70]
            lines.append(f"  {tab.index}{mark}: {title} - {url}")
        lines.append("")

    lines.extend([f"URL: {snapshot.url}", f"Title: {snapshot.title}", ""])

    if snapshot.headings:
        lines.append("Structure (headings):")
        for heading in snapshot.headings:
            lines.append(f"  {'#' * heading.level} {heading.text}")
        lines.append("")

    if snapshot.content_excerpt:
        lines.append("Page content (excerpt):")
        lines.append(snapshot.content_excerpt)
        lines.append("")

    lines.append("Interactive elements (use id to click or type):")
    for element in snapshot.elements:
        lines.append(describe_element(element))
    if snapshot.truncated or len(snapshot.elements) >= max_elements:
        lines.append(f"  ... (page truncated to {max_elements} elements)")

    return "\n".join(lines)
