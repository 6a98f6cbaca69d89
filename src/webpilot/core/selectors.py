"""Resolution of snapshot selector descriptors against the live page."""

from playwright.async_api import Locator, Page

from .models import IndexedSelector, PlainSelector, SelectorDescriptor, TextQualifiedSelector

# Re-resolves the element inside the page, falls back to a visible-text scan,
# moves from a wrapper to its link and dispatches a full synthetic click.
SCRIPT_CLICK = r"""
({ desc, textHint }) => {
    const findBySelector = () => {
        try {
            if (desc.type === 'xpath' && desc.value) {
                return document.evaluate(desc.value, document, null, XPathResult.FIRST_ORDERED_NODE_TYPE, null).singleNodeValue;
            }
            if (desc.type === 'nth' && desc.selector != null && desc.index != null) {
                return document.querySelectorAll(desc.selector)[desc.index] || null;
            }
            if (desc.type === 'selector' && desc.value) {
                return document.querySelector(desc.value);
            }
        } catch (e) {
            return null;
        }
        return null;
    };

    const findByText = () => {
        if (!textHint || textHint.length < 2) return null;
        const hint = textHint.trim().toLowerCase();
        const candidates = document.querySelectorAll(
            'a[href], button, [role="button"], [role="link"], [role="menuitem"], [role="tab"], [role="option"]'
        );
        for (const c of candidates) {
            const text = (c.innerText || c.textContent || '').trim().toLowerCase();
            if (text && text.includes(hint)) return c;
            const href = (c.getAttribute('href') || '').toLowerCase();
            if (href && hint.length >= 5 && href.includes(hint)) return c;
        }
        return null;
    };

    let el = findBySelector();
    if (!el) el = findByText();
    if (!el || typeof el.click !== 'function') throw new Error('Element not found or not clickable');

    const tag = el.tagName.toUpperCase();
    if (tag !== 'A' && tag !== 'BUTTON' && tag !== 'INPUT') {
        const innerLink = el.querySelector('a[href]');
        if (innerLink) {
            el = innerLink;
        } else {
            const parentLink = el.closest ? el.closest('a[href]') : null;
            if (parentLink) el = parentLink;
        }
    }

    el.scrollIntoView({ block: 'center', behavior: 'instant' });
    if (typeof el.focus === 'function') el.focus();

    const rect = el.getBoundingClientRect();
    const x = rect.left + rect.width / 2;
    const y = rect.top + rect.height / 2;
    const coords = { bubbles: true, cancelable: true, view: window, clientX: x, clientY: y, detail: 1 };

    el.dispatchEvent(new PointerEvent('pointerdown', { ...coords, pointerId: 1, pointerType: 'mouse' }));
    el.dispatchEvent(new PointerEvent('pointerup', { ...coords, pointerId: 1, pointerType: 'mouse' }));
    el.dispatchEvent(new MouseEvent('mousedown', coords));
    el.dispatchEvent(new MouseEvent('mouseup', coords));
    el.dispatchEvent(new MouseEvent('click', coords));
    el.click();
    return el.tagName.toLowerCase();
}
"""


def locator_for(page: Page, descriptor: SelectorDescriptor) -> Locator:
    """Return the Playwright locator a descriptor stands for."""
    if isinstance(descriptor, TextQualifiedSelector):
        return page.locator(f"xpath={descriptor.xpath}").first
    if isinstance(descriptor, IndexedSelector):
        return page.locator(descriptor.selector).nth(descriptor.index)
    if isinstance(descriptor, PlainSelector):
        return page.locator(descriptor.selector).first
    raise ValueError(f"Invalid selector descriptor: {descriptor!r}")


async def click_via_script(page: Page, descriptor: SelectorDescriptor, text_hint: str = "") -> str:
    """
    Click from inside the page with synthetic pointer and mouse events.

    Returns the tag name of the node that received the click.
    """
    return await page.evaluate(
        SCRIPT_CLICK,
        {"desc": descriptor.to_payload(), "textHint": (text_hint or "")[:40]},
    )
